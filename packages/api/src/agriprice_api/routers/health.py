"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from agriprice_shared.constants import EntityKind

from agriprice_api.dependencies import PriceEngine, get_engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}


@router.get("/ready")
async def ready(engine: PriceEngine = Depends(get_engine)) -> dict:
    stages = engine.repo.list_canonical(EntityKind.PRICE_STAGE)
    return {"status": "ready", "price_stages": len(stages)}
