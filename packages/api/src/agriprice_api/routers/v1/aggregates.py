"""Price aggregate endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query

from agriprice_api.dependencies import PriceEngine, get_engine
from agriprice_api.responses import ApiError, wrap_response

router = APIRouter(prefix="/aggregates", tags=["aggregates"])


@router.get("")
async def list_aggregates(
    product_id: str | None = Query(None, description="Canonical product id"),
    period_type: Literal["WEEKLY", "MONTHLY", "ANNUAL"] | None = Query(None),
    market_type: str | None = Query(None, description="WHOLESALE, RETAIL, PRODUCER, PROCESSING"),
    year_from: int | None = Query(None),
    year_to: int | None = Query(None),
    engine: PriceEngine = Depends(get_engine),
):
    records = engine.list_aggregates(
        product_id=product_id,
        period_type=period_type,
        market_type=market_type.upper() if market_type else None,
        year_from=year_from,
        year_to=year_to,
    )
    data = [r.model_dump(mode="json") for r in records]
    return wrap_response(data, total_count=len(data))


@router.post("/recompute")
async def recompute_all(engine: PriceEngine = Depends(get_engine)):
    summary = engine.recompute_all_aggregates()
    return wrap_response(summary.as_dict())


@router.post("/{product_id}/recompute", responses={404: {"model": ApiError}})
async def recompute_product(product_id: str, engine: PriceEngine = Depends(get_engine)):
    written = engine.recompute_aggregates_for_product(product_id)
    return wrap_response({"product_id": product_id, "aggregates_written": written})
