"""
Exchange rate endpoints
"""

from fastapi import APIRouter, HTTPException, Depends, status

from .dependencies import BasketSystem, get_basket_system, to_http_exception
from .schemas import RateModel, RateUpdate, RegisterRateRequest
from ..currency import decimal_from_string
from ..exceptions import BasketsError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def register_rate(
    request: RegisterRateRequest,
    system: BasketSystem = Depends(get_basket_system)
):
    """Start tracking a currency's rate to the base currency"""
    try:
        rate = system.rate_ledger.register_rate(request.currency, decimal_from_string(request.rate))
    except BasketsError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    
    return RateModel.from_rate(rate)


@router.post("/update")
async def update_rate(
    update: RateUpdate,
    system: BasketSystem = Depends(get_basket_system)
):
    """Record a new rate and re-value every account priced in it"""
    try:
        rate = system.rate_ledger.record_rate_update(update.id, decimal_from_string(update.rate))
    except BasketsError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    
    return RateModel.from_rate(rate)


@router.get("")
async def list_rates(system: BasketSystem = Depends(get_basket_system)):
    """Latest revision of every tracked rate"""
    rates = system.repository.find_latest_rates()
    return {"rates": [RateModel.from_rate(r) for r in sorted(rates, key=lambda r: r.currency)]}


@router.get("/{lineage_id}/history")
async def get_rate_history(
    lineage_id: str,
    system: BasketSystem = Depends(get_basket_system)
):
    """Every revision of a rate, oldest first"""
    try:
        history = system.rate_ledger.get_rate_history(lineage_id)
    except BasketsError as e:
        raise to_http_exception(e)
    return {"revisions": [RateModel.from_rate(r) for r in history]}
