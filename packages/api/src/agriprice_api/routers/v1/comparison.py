"""Cross-source comparison endpoint."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from agriprice_engine.comparison import Selection

from agriprice_api.dependencies import PriceEngine, get_engine
from agriprice_api.responses import ApiError, wrap_response

router = APIRouter(prefix="/comparison", tags=["comparison"])


def _parse_selection(raw: str) -> Selection:
    country, _, source = raw.partition(":")
    if not country or not source:
        raise HTTPException(
            status_code=400,
            detail=f"Selection must look like COUNTRY:SOURCE (e.g. AZ:AZ, DE:EU), got {raw!r}",
        )
    try:
        return Selection(country_code=country, source=source.upper())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown source in selection {raw!r}") from exc


@router.get("", responses={404: {"model": ApiError}})
async def compare(
    product_id: str = Query(..., description="Canonical product id"),
    selection: list[str] = Query(..., description="COUNTRY:SOURCE, repeatable"),
    period_type: Literal["WEEKLY", "MONTHLY", "ANNUAL"] = Query("ANNUAL"),
    market_type: str | None = Query(None),
    year_from: int | None = Query(None),
    year_to: int | None = Query(None),
    currency: str = Query("USD"),
    unit: str = Query("kg"),
    engine: PriceEngine = Depends(get_engine),
):
    selections = [_parse_selection(s) for s in selection]
    result = engine.compare(
        product_id,
        selections,
        period_type=period_type,
        market_type=market_type.upper() if market_type else None,
        year_from=year_from,
        year_to=year_to,
        currency=currency.upper(),
        unit=unit,
    )
    return wrap_response(
        result.model_dump(mode="json"),
        total_count=len(result.series),
        currency=result.currency,
        unit=result.unit,
    )
