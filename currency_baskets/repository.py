"""
Revision Repository

Durable record store for rate and account revisions over a StorageInterface.
Revisions live in append-only tables; a head table per entity maps each
lineage to its latest revision and is replaced in the same transaction as
the append (compare-and-append on the head version).
"""

from decimal import Decimal
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Any
from dataclasses import dataclass
from collections import OrderedDict
import threading

from .storage import StorageInterface
from .models import Account, Rate
from .exceptions import ConcurrentUpdateError


@dataclass(frozen=True)
class CurrencyAggregate:
    """Summed holdings of one currency across a set of latest accounts"""
    currency: str
    amount: Decimal
    amount_base: Decimal


class RevisionRepository:
    """
    Record store for rate and account revisions
    """

    def __init__(self, storage: StorageInterface, rate_cache_size: int = 1024):
        self.storage = storage
        self.rates_table = "rates"
        self.rate_heads_table = "rate_heads"
        self.accounts_table = "accounts"
        self.account_heads_table = "account_heads"
        # Least recently used rate revisions, capped at rate_cache_size
        self._rate_cache: "OrderedDict[str, Rate]" = OrderedDict()
        self.rate_cache_size = rate_cache_size
        self._cache_lock = threading.Lock()

    # Rates

    def find_rate_revision(self, revision_id: str) -> Optional[Rate]:
        """Load one rate revision by its revision id"""
        # Revisions are immutable so a cached copy never goes stale
        with self._cache_lock:
            cached = self._rate_cache.get(revision_id)
            if cached:
                self._rate_cache.move_to_end(revision_id)
                return cached
        data = self.storage.load(self.rates_table, revision_id)
        if not data:
            return None
        rate = Rate.from_dict(data)
        with self._cache_lock:
            self._rate_cache[revision_id] = rate
            if len(self._rate_cache) > self.rate_cache_size:
                self._rate_cache.popitem(last=False)
        return rate

    def find_latest_rate(self, lineage_id: str) -> Optional[Rate]:
        head = self.storage.load(self.rate_heads_table, lineage_id)
        if not head:
            return None
        return self.find_rate_revision(head['revision_id'])

    def find_latest_rate_by_currency(self, currency: str) -> Optional[Rate]:
        heads = self.storage.find(self.rate_heads_table, {"currency": currency})
        if not heads:
            return None
        return self.find_rate_revision(heads[0]['revision_id'])

    def find_latest_rates(self) -> List[Rate]:
        heads = self.storage.load_all(self.rate_heads_table)
        return [self.find_rate_revision(head['revision_id']) for head in heads]

    def find_rate_revisions(self, lineage_id: str) -> List[Rate]:
        """Every revision of a rate lineage, oldest first"""
        rows = self.storage.find(self.rates_table, {"lineage_id": lineage_id})
        return sorted((Rate.from_dict(row) for row in rows), key=lambda r: r.version)

    def append_rate(self, revision: Rate) -> Rate:
        with self.storage.atomic():
            self._check_head(self.rate_heads_table, "rate", revision.lineage_id, revision.version)
            self.storage.insert(self.rates_table, revision.id, revision.to_dict())
            self.storage.save(self.rate_heads_table, revision.lineage_id, {
                "id": revision.lineage_id,
                "revision_id": revision.id,
                "version": revision.version,
                "currency": revision.currency
            })
        return revision

    # Accounts

    def _hydrate(self, data: Dict[str, Any]) -> Account:
        rate = None
        if data.get('rate_id'):
            rate = self.find_rate_revision(data['rate_id'])
        return Account.from_dict(data, rate)

    def _load_heads(self, heads: Iterable[Dict[str, Any]]) -> List[Account]:
        accounts = []
        for head in heads:
            data = self.storage.load(self.accounts_table, head['revision_id'])
            accounts.append(self._hydrate(data))
        return accounts

    def find_account_revision(self, revision_id: str) -> Optional[Account]:
        data = self.storage.load(self.accounts_table, revision_id)
        return self._hydrate(data) if data else None

    def find_latest_account(self, lineage_id: str) -> Optional[Account]:
        head = self.storage.load(self.account_heads_table, lineage_id)
        if not head:
            return None
        return self.find_account_revision(head['revision_id'])

    def find_latest_account_for(self, user_id: str, bank: str, currency: str) -> Optional[Account]:
        """Latest revision of the lineage owning (user, bank, currency), if any"""
        heads = self.storage.find(self.account_heads_table, {
            "user_id": user_id, "bank": bank, "currency": currency
        })
        accounts = self._load_heads(heads)
        return accounts[0] if accounts else None

    def find_latest_accounts_by_user_ids(self, user_ids: Iterable[str]) -> List[Account]:
        wanted = set(user_ids)
        if not wanted:
            return []
        heads = [head for head in self.storage.load_all(self.account_heads_table)
                 if head['user_id'] in wanted]
        return self._load_heads(heads)

    def find_latest_accounts_by_rate_lineage(self, rate_lineage_id: str) -> List[Account]:
        heads = self.storage.find(self.account_heads_table, {"rate_lineage_id": rate_lineage_id})
        return self._load_heads(heads)

    def find_account_revisions(self, lineage_id: str) -> List[Account]:
        """Every revision of an account lineage, oldest first"""
        rows = self.storage.find(self.accounts_table, {"lineage_id": lineage_id})
        return sorted((self._hydrate(row) for row in rows), key=lambda a: a.version)

    def sum_base_amount_as_of(self, user_ids: Iterable[str], timestamp: datetime) -> Optional[Decimal]:
        """
        Sum of amount_base over the last revision of each lineage updated
        strictly before ``timestamp``. None when no revision qualifies.
        """
        wanted = set(user_ids)
        if not wanted:
            return None

        as_of: Dict[str, Dict[str, Any]] = {}
        for row in self.storage.load_all(self.accounts_table):
            if row['user_id'] not in wanted or not row.get('updated'):
                continue
            if Account.parse_timestamp(row['updated']) >= timestamp:
                continue
            current = as_of.get(row['lineage_id'])
            if current is None or int(row['version']) > int(current['version']):
                as_of[row['lineage_id']] = row

        if not as_of:
            return None
        return sum((Decimal(row['amount_base']) for row in as_of.values()), Decimal('0'))

    def aggregate_by_currency_for_latest_accounts(self, user_ids: Iterable[str]) -> List[CurrencyAggregate]:
        totals: Dict[str, tuple] = {}
        for account in self.find_latest_accounts_by_user_ids(user_ids):
            amount, amount_base = totals.get(account.currency, (Decimal('0'), Decimal('0')))
            totals[account.currency] = (amount + account.amount, amount_base + account.amount_base)
        return [
            CurrencyAggregate(currency=currency, amount=amount, amount_base=amount_base)
            for currency, (amount, amount_base) in sorted(totals.items())
        ]

    def append_account(self, revision: Account) -> Account:
        with self.storage.atomic():
            self._check_head(self.account_heads_table, "account", revision.lineage_id, revision.version)
            self.storage.insert(self.accounts_table, revision.id, revision.to_dict())
            self.storage.save(self.account_heads_table, revision.lineage_id, {
                "id": revision.lineage_id,
                "revision_id": revision.id,
                "version": revision.version,
                "user_id": revision.user_id,
                "bank": revision.bank,
                "currency": revision.currency,
                "rate_lineage_id": revision.rate_lineage_id
            })
        return revision

    def append_accounts(self, revisions: Iterable[Account]) -> List[Account]:
        with self.storage.atomic():
            return [self.append_account(revision) for revision in revisions]

    def _check_head(self, table: str, kind: str, lineage_id: str, version: int) -> None:
        """Refuse an append whose predecessor is no longer the head"""
        head = self.storage.load(table, lineage_id)
        current = int(head['version']) if head else None
        expected = version - 1
        if (current or 0) != expected:
            raise ConcurrentUpdateError(kind, lineage_id, expected, current)
