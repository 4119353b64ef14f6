"""Currency / unit conversion endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from agriprice_api.dependencies import PriceEngine, get_engine
from agriprice_api.responses import wrap_response

router = APIRouter(tags=["conversion"])


@router.get("/conversion-rates")
async def conversion_rates(engine: PriceEngine = Depends(get_engine)):
    return wrap_response(engine.rate_table())


@router.get("/convert")
async def convert(
    value: float = Query(..., description="Price in from_currency per from_unit"),
    from_currency: str = Query(...),
    to_currency: str = Query(...),
    from_unit: str = Query(...),
    to_unit: str = Query(...),
    engine: PriceEngine = Depends(get_engine),
):
    result = engine.convert(value, from_currency, to_currency, from_unit, to_unit)
    return wrap_response(
        {
            "value": result.value,
            "converted": result.converted,
            "error": result.error.code if result.error else None,
            "message": result.error.message if result.error else None,
        },
        currency=to_currency.upper() if result.converted else from_currency.upper(),
        unit=to_unit if result.converted else from_unit,
    )
