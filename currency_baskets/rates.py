"""
Rate Ledger Module

Appends exchange rate revisions and drives the account re-valuation that
every rate change implies. The rate append and the cascaded account appends
commit together or not at all.
"""

from decimal import Decimal
from typing import List, Optional, Union
import logging
import uuid

from .accounts import AccountLedger
from .clock import Clock, SystemClock
from .currency import ZERO, normalize_currency_code, to_decimal
from .exceptions import DuplicateLineageError, InvalidRateError, LineageNotFoundError
from .logging_config import get_logger, log_action
from .models import Rate
from .repository import RevisionRepository


class RateLedger:
    """
    Manages rate lineages, one per currency
    """

    def __init__(
        self,
        repository: RevisionRepository,
        account_ledger: AccountLedger,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.repository = repository
        self.account_ledger = account_ledger
        self.clock = clock or SystemClock()
        self.logger = logger or get_logger("currency_baskets.rates")

    @staticmethod
    def _validate_rate(value: Union[Decimal, int, str]) -> Decimal:
        rate = to_decimal(value)
        if not rate.is_finite() or rate <= ZERO:
            raise InvalidRateError(value)
        return rate

    def register_rate(self, currency: str, rate: Union[Decimal, int, str]) -> Rate:
        """
        Create version 1 of a rate lineage for a currency

        Raises:
            DuplicateLineageError: If the currency already has a rate lineage
            InvalidRateError: If rate is not positive
        """
        currency = normalize_currency_code(currency)
        rate = self._validate_rate(rate)

        with self.repository.storage.atomic():
            existing = self.repository.find_latest_rate_by_currency(currency)
            if existing:
                raise DuplicateLineageError("rate", currency, existing.lineage_id)

            revision = Rate(
                id=str(uuid.uuid4()),
                lineage_id=str(uuid.uuid4()),
                version=1,
                updated=self.clock.now(),
                currency=currency,
                rate=rate
            )
            self.repository.append_rate(revision)

        log_action(
            self.logger, "info", f"Registered rate for {currency}",
            action="rate_registered", lineage_id=revision.lineage_id,
            extra={"rate": str(rate)}
        )
        return revision

    def record_rate_update(self, lineage_id: str, new_rate: Union[Decimal, int, str]) -> Rate:
        """
        Append a new rate revision and re-value every account priced in it

        Returns:
            The new latest rate revision

        Raises:
            LineageNotFoundError: If the rate lineage has no revisions
            InvalidRateError: If new_rate is not positive
        """
        new_rate = self._validate_rate(new_rate)

        with self.repository.storage.atomic():
            previous = self.repository.find_latest_rate(lineage_id)
            if previous is None:
                log_action(
                    self.logger, "error", f"No rate with id={lineage_id}",
                    action="rate_update_failed", lineage_id=lineage_id
                )
                raise LineageNotFoundError("rate", lineage_id)

            revision = Rate(
                id=str(uuid.uuid4()),
                lineage_id=previous.lineage_id,
                version=previous.version + 1,
                updated=self.clock.now(),
                currency=previous.currency,
                rate=new_rate
            )
            self.repository.append_rate(revision)

            affected = self.repository.find_latest_accounts_by_rate_lineage(lineage_id)
            cascaded = self.account_ledger.cascade_rate_update(affected, revision)

        log_action(
            self.logger, "debug", f"Update rate with id={lineage_id} on rate={new_rate}",
            action="rate_updated", lineage_id=lineage_id,
            extra={"version": revision.version, "accounts_revalued": len(cascaded)}
        )
        return revision

    def get_rate(self, lineage_id: str) -> Optional[Rate]:
        return self.repository.find_latest_rate(lineage_id)

    def get_rate_for_currency(self, currency: str) -> Optional[Rate]:
        return self.repository.find_latest_rate_by_currency(normalize_currency_code(currency))

    def get_rate_history(self, lineage_id: str) -> List[Rate]:
        """All revisions of a rate lineage, version 1 first"""
        history = self.repository.find_rate_revisions(lineage_id)
        if not history:
            raise LineageNotFoundError("rate", lineage_id)
        return history
