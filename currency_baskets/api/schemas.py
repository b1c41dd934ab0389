"""
Pydantic schemas for API requests and responses
"""

from typing import List, Optional, Union
from pydantic import BaseModel, Field

from ..aggregation import AccountView, AmountChangeView, LatestAccountsView, RateView
from ..models import Account, Rate
from ..repository import CurrencyAggregate


# Requests

class OpenAccountRequest(BaseModel):
    user_id: str
    bank: str
    currency: str = Field(..., description="Currency code (USD, EUR, etc.)")
    amount: str = Field(..., description="Decimal amount as string")


class AccountUpdate(BaseModel):
    id: str = Field(..., description="Account lineage id")
    amount: str = Field(..., description="New absolute amount as string")
    expected_version: Optional[int] = Field(None, description="Version the client last saw")


class RegisterRateRequest(BaseModel):
    currency: str = Field(..., description="Currency code (USD, EUR, etc.)")
    rate: str = Field(..., description="Units of base currency per unit, as string")


class RateUpdate(BaseModel):
    id: str = Field(..., description="Rate lineage id")
    rate: str = Field(..., description="New rate as string")


# Responses

class RateModel(BaseModel):
    id: str
    lineage_id: str
    currency: str
    rate: str
    updated: Optional[str] = None
    version: int
    
    @classmethod
    def from_rate(cls, rate: Union[Rate, RateView]) -> 'RateModel':
        return cls(
            id=rate.id,
            lineage_id=rate.lineage_id,
            currency=rate.currency,
            rate=str(rate.rate),
            updated=rate.updated.isoformat() if rate.updated else None,
            version=rate.version
        )


class AccountModel(BaseModel):
    id: str
    lineage_id: str
    user_id: str
    bank: str
    currency: str
    amount: str
    amount_change: str
    amount_base: str
    amount_base_change: str
    rate_id: Optional[str] = None
    previous_id: Optional[str] = None
    updated: Optional[str] = None
    version: int
    
    @classmethod
    def from_account(cls, account: Union[Account, AccountView]) -> 'AccountModel':
        return cls(
            id=account.id,
            lineage_id=account.lineage_id,
            user_id=account.user_id,
            bank=account.bank,
            currency=account.currency,
            amount=str(account.amount),
            amount_change=str(account.amount_change),
            amount_base=str(account.amount_base),
            amount_base_change=str(account.amount_base_change),
            rate_id=account.rate_id,
            previous_id=getattr(account, 'previous_id', None),
            updated=account.updated.isoformat() if account.updated else None,
            version=account.version
        )


class AmountChangeModel(BaseModel):
    change: str
    style: str
    icon: str
    
    @classmethod
    def from_view(cls, view: AmountChangeView) -> 'AmountChangeModel':
        return cls(change=str(view.change), style=view.style, icon=view.icon)


class LatestAccountsModel(BaseModel):
    accounts: List[AccountModel]
    rates: List[RateModel]
    latest_rates_updated: Optional[str] = None
    total_amount: str
    week_change: AmountChangeModel
    month_change: AmountChangeModel
    base_currency: str
    
    @classmethod
    def from_view(cls, view: LatestAccountsView) -> 'LatestAccountsModel':
        return cls(
            accounts=[AccountModel.from_account(a) for a in view.accounts],
            rates=[RateModel.from_rate(r) for r in sorted(view.rates, key=lambda r: r.currency)],
            latest_rates_updated=view.latest_rates_updated.isoformat() if view.latest_rates_updated else None,
            total_amount=str(view.total_amount),
            week_change=AmountChangeModel.from_view(view.week_change),
            month_change=AmountChangeModel.from_view(view.month_change),
            base_currency=view.base_currency
        )


class AggregatedAmountModel(BaseModel):
    currency: str
    amount: str
    amount_base: str
    
    @classmethod
    def from_aggregate(cls, aggregate: CurrencyAggregate) -> 'AggregatedAmountModel':
        return cls(
            currency=aggregate.currency,
            amount=str(aggregate.amount),
            amount_base=str(aggregate.amount_base)
        )
