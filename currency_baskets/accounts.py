"""
Account Ledger Module

Appends account revisions. An account is never edited: every amount change
and every rate re-valuation creates the next version of its lineage, with
the base amount recomputed and both deltas taken against the predecessor.
"""

from decimal import Decimal
from typing import Iterable, List, Optional, Union
import logging
import uuid

from .clock import Clock, SystemClock
from .currency import normalize_currency_code, to_decimal
from .exceptions import (
    ConcurrentUpdateError, DuplicateLineageError, InvalidAmountError, LineageNotFoundError
)
from .logging_config import get_logger, log_action
from .models import Account, Rate, base_amount
from .repository import RevisionRepository


class AccountLedger:
    """
    Manages account lineages: opening, amount updates and rate cascades
    """

    def __init__(
        self,
        repository: RevisionRepository,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.repository = repository
        self.clock = clock or SystemClock()
        self.logger = logger or get_logger("currency_baskets.accounts")

    @staticmethod
    def _validate_amount(value: Union[Decimal, int, str]) -> Decimal:
        amount = to_decimal(value)
        if not amount.is_finite():
            raise InvalidAmountError(value)
        return amount

    def open_account(
        self,
        user_id: str,
        bank: str,
        currency: str,
        amount: Union[Decimal, int, str]
    ) -> Account:
        """
        Create version 1 of a new account lineage (the first deposit)

        The latest rate registered for the currency is attached, if any.

        Raises:
            DuplicateLineageError: If the user already holds this currency at this bank
            InvalidAmountError: If amount is not finite
        """
        currency = normalize_currency_code(currency)
        amount = self._validate_amount(amount)

        with self.repository.storage.atomic():
            existing = self.repository.find_latest_account_for(user_id, bank, currency)
            if existing:
                raise DuplicateLineageError("account", f"{user_id}/{bank}/{currency}", existing.lineage_id)

            rate = self.repository.find_latest_rate_by_currency(currency)
            amount_base = base_amount(amount, rate)
            account = Account(
                id=str(uuid.uuid4()),
                lineage_id=str(uuid.uuid4()),
                version=1,
                updated=self.clock.now(),
                user_id=user_id,
                bank=bank,
                currency=currency,
                amount=amount,
                amount_change=amount,
                amount_base=amount_base,
                amount_base_change=amount_base,
                rate=rate
            )
            self.repository.append_account(account)

        log_action(
            self.logger, "info", f"Opened account {account.lineage_id}",
            action="account_opened", lineage_id=account.lineage_id, user_id=user_id,
            extra={"bank": bank, "currency": currency, "amount": str(amount)}
        )
        return account

    def record_amount_update(
        self,
        lineage_id: str,
        new_amount: Union[Decimal, int, str],
        expected_version: Optional[int] = None
    ) -> Account:
        """
        Append a revision carrying a new absolute amount

        Args:
            lineage_id: Account lineage to update
            new_amount: New holding in the account's own currency (any sign)
            expected_version: Version the caller last saw; checked before appending

        Returns:
            The new latest revision

        Raises:
            LineageNotFoundError: If the lineage has no revisions
            ConcurrentUpdateError: If expected_version is stale
            InvalidAmountError: If new_amount is not finite
        """
        new_amount = self._validate_amount(new_amount)

        with self.repository.storage.atomic():
            previous = self.repository.find_latest_account(lineage_id)
            if previous is None:
                log_action(
                    self.logger, "error", f"Not found account for id={lineage_id}",
                    action="account_amount_update_failed", lineage_id=lineage_id
                )
                raise LineageNotFoundError("account", lineage_id)
            if expected_version is not None and expected_version != previous.version:
                raise ConcurrentUpdateError("account", lineage_id, expected_version, previous.version)

            updated = self._amount_successor(previous, new_amount)
            self.repository.append_account(updated)

        log_action(
            self.logger, "debug", f"Update account with id={lineage_id} on amount={new_amount}",
            action="account_amount_updated", lineage_id=lineage_id, user_id=updated.user_id,
            extra={"version": updated.version, "amount_change": str(updated.amount_change)}
        )
        return updated

    def cascade_rate_update(self, affected_accounts: Iterable[Account], new_rate: Rate) -> List[Account]:
        """
        Re-value each account under ``new_rate``, appending one revision per account

        The amount and amount_change carry over unchanged; only the base
        figures move. An empty input is a valid no-op.
        """
        affected_accounts = list(affected_accounts)
        if not affected_accounts:
            log_action(
                self.logger, "info", f"No accounts with rate id={new_rate.lineage_id}",
                action="rate_cascade_empty", lineage_id=new_rate.lineage_id
            )
            return []

        successors = []
        for previous in affected_accounts:
            log_action(
                self.logger, "debug", f"Update account with id={previous.lineage_id} on rate={new_rate.rate}",
                action="account_rate_updated", lineage_id=previous.lineage_id, user_id=previous.user_id
            )
            successors.append(self._rate_successor(previous, new_rate))

        return self.repository.append_accounts(successors)

    def get_account(self, lineage_id: str) -> Optional[Account]:
        """Latest revision of an account lineage"""
        return self.repository.find_latest_account(lineage_id)

    def get_account_history(self, lineage_id: str) -> List[Account]:
        """All revisions of an account lineage, version 1 first"""
        history = self.repository.find_account_revisions(lineage_id)
        if not history:
            raise LineageNotFoundError("account", lineage_id)
        return history

    def _amount_successor(self, previous: Account, new_amount: Decimal) -> Account:
        rate = previous.rate
        new_amount_base = base_amount(new_amount, rate)
        return Account(
            id=str(uuid.uuid4()),
            lineage_id=previous.lineage_id,
            version=previous.version + 1,
            updated=self.clock.now(),
            user_id=previous.user_id,
            bank=previous.bank,
            currency=previous.currency,
            amount=new_amount,
            amount_change=new_amount - previous.amount,
            amount_base=new_amount_base,
            amount_base_change=new_amount_base - previous.amount_base,
            rate=rate,
            previous_id=previous.id
        )

    def _rate_successor(self, previous: Account, new_rate: Rate) -> Account:
        new_amount_base = base_amount(previous.amount, new_rate)
        return Account(
            id=str(uuid.uuid4()),
            lineage_id=previous.lineage_id,
            version=previous.version + 1,
            updated=self.clock.now(),
            user_id=previous.user_id,
            bank=previous.bank,
            currency=previous.currency,
            amount=previous.amount,
            amount_change=previous.amount_change,
            amount_base=new_amount_base,
            amount_base_change=new_amount_base - previous.amount_base,
            rate=new_rate,
            previous_id=previous.id
        )
