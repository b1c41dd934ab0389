"""
Account endpoints
"""

from typing import List
from fastapi import APIRouter, HTTPException, Depends, Query, status

from .dependencies import BasketSystem, get_basket_system, to_http_exception
from .schemas import (
    AccountModel, AccountUpdate, AggregatedAmountModel,
    LatestAccountsModel, OpenAccountRequest
)
from ..currency import decimal_from_string
from ..exceptions import BasketsError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_account(
    request: OpenAccountRequest,
    system: BasketSystem = Depends(get_basket_system)
):
    """Open an account with its first deposit"""
    try:
        account = system.account_ledger.open_account(
            user_id=request.user_id,
            bank=request.bank,
            currency=request.currency,
            amount=decimal_from_string(request.amount)
        )
    except BasketsError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    
    return AccountModel.from_account(account)


@router.post("/update")
async def update_account_amount(
    update: AccountUpdate,
    system: BasketSystem = Depends(get_basket_system)
):
    """Record a new absolute amount for an account"""
    try:
        account = system.account_ledger.record_amount_update(
            update.id,
            decimal_from_string(update.amount),
            expected_version=update.expected_version
        )
    except BasketsError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    
    return AccountModel.from_account(account)


@router.get("/latest")
async def get_latest_accounts(
    user_ids: List[str] = Query(..., description="Users whose accounts to include"),
    system: BasketSystem = Depends(get_basket_system)
):
    """Latest accounts with totals and week/month change"""
    view = system.aggregation_engine.get_latest_accounts_view(user_ids)
    return LatestAccountsModel.from_view(view)


@router.get("/aggregated")
async def get_aggregated_amount(
    user_ids: List[str] = Query(..., description="Users whose accounts to include"),
    system: BasketSystem = Depends(get_basket_system)
):
    """Holdings summed per currency"""
    aggregates = system.aggregation_engine.get_aggregated_amount(user_ids)
    return {"currencies": [AggregatedAmountModel.from_aggregate(a) for a in aggregates]}


@router.get("/{lineage_id}")
async def get_account(
    lineage_id: str,
    system: BasketSystem = Depends(get_basket_system)
):
    """Latest revision of an account"""
    account = system.account_ledger.get_account(lineage_id)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return AccountModel.from_account(account)


@router.get("/{lineage_id}/history")
async def get_account_history(
    lineage_id: str,
    system: BasketSystem = Depends(get_basket_system)
):
    """Every revision of an account, oldest first"""
    try:
        history = system.account_ledger.get_account_history(lineage_id)
    except BasketsError as e:
        raise to_http_exception(e)
    return {"revisions": [AccountModel.from_account(a) for a in history]}
