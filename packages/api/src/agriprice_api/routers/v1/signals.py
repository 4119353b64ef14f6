"""Price-change signal endpoints."""

from __future__ import annotations

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query

from agriprice_shared.config import settings
from agriprice_api.dependencies import PriceEngine, get_engine
from agriprice_api.responses import wrap_response

router = APIRouter(prefix="/price-signals", tags=["price-signals"])


@router.get("")
async def list_price_signals(
    status: Literal["all", "changed", "stable"] = Query("changed"),
    source: Literal["AZ", "FPMA"] | None = Query(None),
    product_id: str | None = Query(None, description="Canonical product id"),
    limit: int = Query(9, ge=1, le=500),
    engine: PriceEngine = Depends(get_engine),
):
    signals = engine.list_price_signals(
        status=status, source=source, product_id=product_id, limit=limit
    )
    data = [{**s.model_dump(mode="json"), "priority": s.priority} for s in signals]
    return wrap_response(
        data,
        total_count=len(data),
        currency=settings.base_currency,
        unit=settings.base_unit,
    )


@router.post("/update")
async def update_price_signals(
    as_of: date | None = Query(None, description="Reference date (default: today)"),
    engine: PriceEngine = Depends(get_engine),
):
    summary = engine.update_price_signals(as_of)
    return wrap_response(summary.as_dict())
