"""
Revision Models

Immutable rate and account revisions. A lineage is the chain of revisions
sharing one ``lineage_id``; each revision carries its own ``id`` and a
``version`` that grows by one along the chain.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .storage import StorageRecord


@dataclass(frozen=True)
class Rate(StorageRecord):
    """
    Exchange rate revision: units of base currency per unit of ``currency``
    """
    currency: str
    rate: Decimal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Rate':
        return cls(
            id=data['id'],
            lineage_id=data['lineage_id'],
            version=int(data['version']),
            updated=cls.parse_timestamp(data.get('updated')),
            currency=data['currency'],
            rate=Decimal(data['rate'])
        )


@dataclass(frozen=True)
class Account(StorageRecord):
    """
    Holding of one user at one bank in one currency.

    ``amount_base`` is fixed when the revision is created from ``amount``
    and the attached rate; the change fields are relative to the revision
    named by ``previous_id``.
    """
    user_id: str
    bank: str
    currency: str
    amount: Decimal
    amount_change: Decimal
    amount_base: Decimal
    amount_base_change: Decimal
    rate: Optional[Rate] = None
    previous_id: Optional[str] = None

    @property
    def rate_id(self) -> Optional[str]:
        return self.rate.id if self.rate else None

    @property
    def rate_lineage_id(self) -> Optional[str]:
        return self.rate.lineage_id if self.rate else None

    def to_dict(self) -> Dict[str, Any]:
        """Store the rate as a reference, not a copy"""
        result = super().to_dict()
        result.pop('rate')
        result['rate_id'] = self.rate_id
        result['rate_lineage_id'] = self.rate_lineage_id
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any], rate: Optional[Rate] = None) -> 'Account':
        return cls(
            id=data['id'],
            lineage_id=data['lineage_id'],
            version=int(data['version']),
            updated=cls.parse_timestamp(data.get('updated')),
            user_id=data['user_id'],
            bank=data['bank'],
            currency=data['currency'],
            amount=Decimal(data['amount']),
            amount_change=Decimal(data['amount_change']),
            amount_base=Decimal(data['amount_base']),
            amount_base_change=Decimal(data['amount_base_change']),
            rate=rate,
            previous_id=data.get('previous_id')
        )


def base_amount(amount: Decimal, rate: Optional[Rate]) -> Decimal:
    """Value of ``amount`` in base currency under ``rate`` (unchanged without one)"""
    return amount * rate.rate if rate is not None else amount
