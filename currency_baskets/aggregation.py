"""
Aggregation Engine Module

Read-only views over the latest account revisions of a set of users:
holdings converted to base currency, the rates behind them, and how the
total moved over the last week and month.
"""

from decimal import Decimal
from datetime import datetime, timedelta
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Tuple
from enum import Enum
import logging

from .clock import Clock, SystemClock, months_before
from .currency import ZERO, normalize_currency_code
from .logging_config import get_logger, log_action
from .models import Account, Rate
from .repository import CurrencyAggregate, RevisionRepository


class ChangeDirection(Enum):
    """Sign of a change, with its (style, icon) presentation tags"""
    POSITIVE = ("bg-success", "fa-long-arrow-up")
    NEGATIVE = ("bg-danger", "fa-long-arrow-down")
    ZERO = ("bg-primary", "fa-ban")

    def __init__(self, style: str, icon: str):
        self.style = style
        self.icon = icon

    @classmethod
    def of(cls, value: Decimal) -> 'ChangeDirection':
        if value > ZERO:
            return cls.POSITIVE
        if value < ZERO:
            return cls.NEGATIVE
        return cls.ZERO


@dataclass(frozen=True)
class RateView:
    id: str
    lineage_id: str
    currency: str
    rate: Decimal
    updated: Optional[datetime]
    version: int

    @classmethod
    def from_rate(cls, rate: Rate) -> 'RateView':
        return cls(
            id=rate.id,
            lineage_id=rate.lineage_id,
            currency=rate.currency,
            rate=rate.rate,
            updated=rate.updated,
            version=rate.version
        )


@dataclass(frozen=True)
class AccountView:
    id: str
    lineage_id: str
    user_id: str
    bank: str
    currency: str
    amount: Decimal
    amount_change: Decimal
    amount_base: Decimal
    amount_base_change: Decimal
    rate_id: Optional[str]
    updated: Optional[datetime]
    version: int

    @classmethod
    def from_account(cls, account: Account) -> 'AccountView':
        return cls(
            id=account.id,
            lineage_id=account.lineage_id,
            user_id=account.user_id,
            bank=account.bank,
            currency=account.currency,
            amount=account.amount,
            amount_change=account.amount_change,
            amount_base=account.amount_base,
            amount_base_change=account.amount_base_change,
            rate_id=account.rate_id,
            updated=account.updated,
            version=account.version
        )


@dataclass(frozen=True)
class AmountChangeView:
    change: Decimal
    direction: ChangeDirection

    @property
    def style(self) -> str:
        return self.direction.style

    @property
    def icon(self) -> str:
        return self.direction.icon


@dataclass(frozen=True)
class LatestAccountsView:
    accounts: Tuple[AccountView, ...]
    rates: FrozenSet[RateView]
    latest_rates_updated: Optional[datetime]
    total_amount: Decimal
    week_change: AmountChangeView
    month_change: AmountChangeView
    base_currency: str = "USD"


class AggregationEngine:
    """
    Builds read views over users' latest accounts
    """

    def __init__(
        self,
        repository: RevisionRepository,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
        change_window_days: int = 7,
        change_window_months: int = 1,
        base_currency: str = "USD"
    ):
        self.repository = repository
        self.clock = clock or SystemClock()
        self.logger = logger or get_logger("currency_baskets.aggregation")
        self.change_window_days = change_window_days
        self.change_window_months = change_window_months
        self.base_currency = normalize_currency_code(base_currency)

    def get_latest_accounts_view(self, user_ids: Iterable[str]) -> LatestAccountsView:
        """
        Latest accounts of ``user_ids`` with totals and week/month change

        All reads run in one storage transaction so the total and both
        historical sums come from the same state.
        """
        user_ids = list(user_ids)
        now = self.clock.now()
        week_ago = now - timedelta(days=self.change_window_days)
        month_ago = months_before(now, self.change_window_months)

        with self.repository.storage.atomic():
            accounts = self.repository.find_latest_accounts_by_user_ids(user_ids)
            total = sum((account.amount_base for account in accounts), Decimal('0'))
            week_change = self.compute_change(total, user_ids, week_ago)
            month_change = self.compute_change(total, user_ids, month_ago)

        account_views = []
        rates = set()
        latest_rates_updated = None
        for account in accounts:
            account_views.append(AccountView.from_account(account))
            rate = account.rate
            if rate is not None:
                rates.add(RateView.from_rate(rate))
                if rate.updated is None:
                    log_action(
                        self.logger, "warning", f"Rate={rate.id} with null updated field",
                        action="rate_missing_timestamp", lineage_id=rate.lineage_id
                    )
                elif latest_rates_updated is None or rate.updated > latest_rates_updated:
                    latest_rates_updated = rate.updated

        return LatestAccountsView(
            accounts=tuple(account_views),
            rates=frozenset(rates),
            latest_rates_updated=latest_rates_updated,
            total_amount=total,
            week_change=week_change,
            month_change=month_change,
            base_currency=self.base_currency
        )

    def compute_change(self, total_amount: Decimal, user_ids: Iterable[str], cutoff: datetime) -> AmountChangeView:
        """
        Change of ``total_amount`` against the users' holdings just before ``cutoff``

        Without any earlier revision there is nothing to compare against and
        the change is zero.
        """
        previous_amount = self.repository.sum_base_amount_as_of(user_ids, cutoff)
        change = total_amount - previous_amount if previous_amount is not None else Decimal('0')
        return AmountChangeView(change=change, direction=ChangeDirection.of(change))

    def get_aggregated_amount(self, user_ids: Iterable[str]) -> List[CurrencyAggregate]:
        """Summed native and base amounts per currency over the latest accounts"""
        return self.repository.aggregate_by_currency_for_latest_accounts(user_ids)
