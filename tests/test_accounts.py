"""
Test suite for the account ledger

Tests opening accounts, amount updates, version chains and the
base-amount / delta invariants every revision must satisfy.
"""

import threading
import pytest
from decimal import Decimal
from datetime import datetime, timezone, timedelta

from currency_baskets.storage import InMemoryStorage
from currency_baskets.clock import FixedClock
from currency_baskets.repository import RevisionRepository
from currency_baskets.accounts import AccountLedger
from currency_baskets.rates import RateLedger
from currency_baskets.aggregation import AggregationEngine
from currency_baskets.models import Account
from currency_baskets.exceptions import (
    ConcurrentUpdateError, DuplicateLineageError, InvalidAmountError, LineageNotFoundError
)


class TestOpenAccount:
    """Test creating the first revision of an account lineage"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.clock = FixedClock()
        self.repository = RevisionRepository(self.storage)
        self.ledger = AccountLedger(self.repository, self.clock)
        self.rates = RateLedger(self.repository, self.ledger, self.clock)

    def test_open_account_with_rate(self):
        """Test that the currency's latest rate is attached and applied"""
        rate = self.rates.register_rate("EUR", Decimal('1.5'))

        account = self.ledger.open_account("user-1", "Bank A", "eur", Decimal('100'))

        assert account.version == 1
        assert account.previous_id is None
        assert account.currency == "EUR"
        assert account.rate == rate
        assert account.amount == Decimal('100')
        assert account.amount_change == Decimal('100')
        assert account.amount_base == Decimal('150')
        assert account.amount_base_change == Decimal('150')
        assert account.updated == self.clock.now()

    def test_open_account_without_rate(self):
        """Test that base amount equals amount when no rate is tracked"""
        account = self.ledger.open_account("user-1", "Bank A", "USD", "250.25")

        assert account.rate is None
        assert account.amount_base == Decimal('250.25')
        assert self.repository.find_latest_account(account.lineage_id) == account

    def test_duplicate_lineage_rejected(self):
        """Test one lineage per (user, bank, currency)"""
        first = self.ledger.open_account("user-1", "Bank A", "USD", 10)

        with pytest.raises(DuplicateLineageError) as exc_info:
            self.ledger.open_account("user-1", "Bank A", "USD", 20)
        assert exc_info.value.lineage_id == first.lineage_id

        # Different bank is a different lineage
        other = self.ledger.open_account("user-1", "Bank B", "USD", 20)
        assert other.lineage_id != first.lineage_id

    def test_invalid_currency_code(self):
        """Test that malformed currency codes are refused"""
        with pytest.raises(ValueError, match="Invalid currency code"):
            self.ledger.open_account("user-1", "Bank A", "DOLLARS", 10)

    def test_float_amount_refused(self):
        """Test that floats never become money"""
        with pytest.raises(TypeError):
            self.ledger.open_account("user-1", "Bank A", "USD", 10.5)


class TestAmountUpdate:
    """Test record_amount_update"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.clock = FixedClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))
        self.repository = RevisionRepository(self.storage)
        self.ledger = AccountLedger(self.repository, self.clock)
        self.rates = RateLedger(self.repository, self.ledger, self.clock)
        self.rates.register_rate("EUR", Decimal('1.5'))
        self.account = self.ledger.open_account("user-1", "Bank A", "EUR", Decimal('100'))

    def test_amount_update_scenario(self):
        """Test 100 @ 1.5 updated to 120"""
        self.clock.advance(timedelta(hours=1))

        updated = self.ledger.record_amount_update(self.account.lineage_id, Decimal('120'))

        assert updated.version == 2
        assert updated.lineage_id == self.account.lineage_id
        assert updated.id != self.account.id
        assert updated.previous_id == self.account.id
        assert updated.amount == Decimal('120')
        assert updated.amount_change == Decimal('20')
        assert updated.amount_base == Decimal('180')
        assert updated.amount_base_change == Decimal('30')
        assert updated.rate == self.account.rate
        assert updated.updated == self.clock.now()

    def test_previous_revision_unchanged(self):
        """Test that updates append and never edit"""
        self.ledger.record_amount_update(self.account.lineage_id, Decimal('120'))

        original = self.repository.find_account_revision(self.account.id)
        assert original == self.account
        assert self.ledger.get_account(self.account.lineage_id).version == 2

    def test_negative_and_zero_amounts_allowed(self):
        """Test that amounts are not validated against sign"""
        zero = self.ledger.record_amount_update(self.account.lineage_id, Decimal('0'))
        assert zero.amount_base == Decimal('0')
        assert zero.amount_base_change == Decimal('-150')

        negative = self.ledger.record_amount_update(self.account.lineage_id, Decimal('-10'))
        assert negative.amount_change == Decimal('-10')
        assert negative.amount_base == Decimal('-15')

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity", Decimal('-Infinity')])
    def test_non_finite_amount_refused(self, value):
        """Test that NaN and infinite amounts never reach the ledger"""
        with pytest.raises(InvalidAmountError) as exc_info:
            self.ledger.record_amount_update(self.account.lineage_id, value)

        assert exc_info.value.code == "INVALID_AMOUNT"
        assert self.storage.count("accounts") == 1
        assert self.ledger.get_account(self.account.lineage_id) == self.account

    def test_non_finite_opening_amount_refused(self):
        """Test that an account cannot be opened with a NaN deposit"""
        with pytest.raises(InvalidAmountError):
            self.ledger.open_account("user-2", "Bank A", "EUR", "NaN")
        assert self.storage.count("accounts") == 1

    def test_view_readable_after_refused_amount(self):
        """Test that the change views still compute once the window has passed"""
        with pytest.raises(InvalidAmountError):
            self.ledger.record_amount_update(self.account.lineage_id, "NaN")
        self.clock.advance(timedelta(days=40))

        view = AggregationEngine(self.repository, self.clock).get_latest_accounts_view(["user-1"])

        assert view.total_amount == Decimal('150')
        assert view.month_change.change == Decimal('0')

    def test_unknown_lineage_raises(self):
        """Test that updating a missing account is reported, not dropped"""
        with pytest.raises(LineageNotFoundError) as exc_info:
            self.ledger.record_amount_update("missing", Decimal('1'))

        assert exc_info.value.code == "LINEAGE_NOT_FOUND"
        assert exc_info.value.kind == "account"
        assert self.storage.count("accounts") == 1

    def test_version_monotonicity(self):
        """Test versions 1..N with no gaps after N-1 updates"""
        for amount in range(1, 6):
            self.ledger.record_amount_update(self.account.lineage_id, Decimal(amount))

        history = self.ledger.get_account_history(self.account.lineage_id)
        assert [a.version for a in history] == [1, 2, 3, 4, 5, 6]

        heads = self.storage.find("account_heads", {"id": self.account.lineage_id})
        assert len(heads) == 1
        assert heads[0]["revision_id"] == history[-1].id

    def test_delta_correctness_over_chain(self):
        """Test every revision's deltas against its predecessor"""
        for amount in ["130", "90.5", "90.5", "-3"]:
            self.ledger.record_amount_update(self.account.lineage_id, Decimal(amount))

        history = self.ledger.get_account_history(self.account.lineage_id)
        for previous, current in zip(history, history[1:]):
            assert current.previous_id == previous.id
            assert current.amount_change == current.amount - previous.amount
            assert current.amount_base_change == current.amount_base - previous.amount_base
            assert current.amount_base == current.amount * current.rate.rate

    def test_history_of_unknown_lineage(self):
        """Test that history of an unknown account raises"""
        with pytest.raises(LineageNotFoundError):
            self.ledger.get_account_history("missing")


class TestOptimisticConcurrency:
    """Test compare-and-append on account lineages"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.repository = RevisionRepository(self.storage)
        self.ledger = AccountLedger(self.repository, FixedClock())
        self.account = self.ledger.open_account("user-1", "Bank A", "USD", Decimal('100'))

    def test_expected_version_checked(self):
        """Test that two updates against the same version cannot both win"""
        self.ledger.record_amount_update(self.account.lineage_id, Decimal('110'), expected_version=1)

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            self.ledger.record_amount_update(self.account.lineage_id, Decimal('120'), expected_version=1)

        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert self.ledger.get_account(self.account.lineage_id).amount == Decimal('110')

    def test_stale_append_rejected(self):
        """Test that the repository refuses a successor of a superseded revision"""
        self.ledger.record_amount_update(self.account.lineage_id, Decimal('110'))

        stale = Account(
            id="stale-revision",
            lineage_id=self.account.lineage_id,
            version=2,
            updated=datetime.now(timezone.utc),
            user_id="user-1",
            bank="Bank A",
            currency="USD",
            amount=Decimal('999'),
            amount_change=Decimal('899'),
            amount_base=Decimal('999'),
            amount_base_change=Decimal('899'),
            previous_id=self.account.id
        )

        with pytest.raises(ConcurrentUpdateError):
            self.repository.append_account(stale)
        assert self.repository.find_account_revision("stale-revision") is None

    def test_concurrent_updates_serialize(self):
        """Test that parallel writers never share a predecessor"""
        errors = []

        def update(amount):
            try:
                self.ledger.record_amount_update(self.account.lineage_id, Decimal(amount))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=update, args=(n,)) for n in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        history = self.ledger.get_account_history(self.account.lineage_id)
        assert [a.version for a in history] == list(range(1, 12))
        for previous, current in zip(history, history[1:]):
            assert current.previous_id == previous.id
