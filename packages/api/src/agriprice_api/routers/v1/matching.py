"""Entity matching endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from agriprice_shared.constants import EntityKind

from agriprice_api.dependencies import PriceEngine, get_engine
from agriprice_api.responses import wrap_response

router = APIRouter(prefix="/matching", tags=["matching"])


@router.post("/{kind}")
async def run_matching(kind: EntityKind, engine: PriceEngine = Depends(get_engine)):
    summary = engine.run_matching(kind)
    return wrap_response(summary.as_dict())
