"""
Service wiring and FastAPI dependencies
"""

from typing import Optional

from fastapi import HTTPException, status

from ..accounts import AccountLedger
from ..aggregation import AggregationEngine
from ..clock import Clock, SystemClock
from ..config import BasketsConfig, get_config
from ..exceptions import (
    BasketsError, ConcurrentUpdateError, DuplicateLineageError,
    InvalidAmountError, InvalidRateError, LineageNotFoundError
)
from ..rates import RateLedger
from ..repository import RevisionRepository
from ..storage import StorageInterface, create_storage


class BasketSystem:
    """Ledgers and aggregation engine sharing one storage backend and clock"""
    
    def __init__(self, storage: StorageInterface, clock: Optional[Clock] = None,
                 config: Optional[BasketsConfig] = None):
        config = config or get_config()
        self.config = config
        self.storage = storage
        self.clock = clock or SystemClock()
        self.repository = RevisionRepository(self.storage)
        self.account_ledger = AccountLedger(self.repository, self.clock)
        self.rate_ledger = RateLedger(self.repository, self.account_ledger, self.clock)
        self.aggregation_engine = AggregationEngine(
            self.repository, self.clock,
            change_window_days=config.change_window_days,
            change_window_months=config.change_window_months,
            base_currency=config.base_currency
        )
    
    @classmethod
    def from_config(cls, config: Optional[BasketsConfig] = None) -> 'BasketSystem':
        config = config or get_config()
        return cls(create_storage(config.database_url), config=config)


basket_system: Optional[BasketSystem] = None


# Dependency to get the basket system
def get_basket_system() -> BasketSystem:
    global basket_system
    if basket_system is None:
        basket_system = BasketSystem.from_config()
    return basket_system


ERROR_STATUS = {
    LineageNotFoundError: status.HTTP_404_NOT_FOUND,
    ConcurrentUpdateError: status.HTTP_409_CONFLICT,
    DuplicateLineageError: status.HTTP_409_CONFLICT,
    InvalidRateError: status.HTTP_400_BAD_REQUEST,
    InvalidAmountError: status.HTTP_400_BAD_REQUEST,
}


def to_http_exception(error: BasketsError) -> HTTPException:
    """Map a typed ledger error onto an HTTP status"""
    status_code = ERROR_STATUS.get(type(error), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail={"code": error.code, "message": error.message})
