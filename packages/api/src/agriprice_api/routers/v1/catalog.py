"""Canonical catalog and source-link endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query

from agriprice_shared.constants import EntityKind

from agriprice_api.dependencies import PriceEngine, get_engine
from agriprice_api.responses import ApiError, wrap_response

router = APIRouter(
    prefix="/catalog",
    tags=["catalog"],
    responses={404: {"model": ApiError}, 409: {"model": ApiError}, 422: {"model": ApiError}},
)


@router.get("/{kind}/canonical")
async def list_canonical(kind: EntityKind, engine: PriceEngine = Depends(get_engine)):
    data = [r.model_dump(mode="json") for r in engine.identity(kind).list_canonical()]
    return wrap_response(data, total_count=len(data))


@router.delete("/{kind}/canonical/{canonical_id}")
async def delete_canonical(
    kind: EntityKind,
    canonical_id: str,
    engine: PriceEngine = Depends(get_engine),
):
    engine.delete_canonical(kind, canonical_id)
    return wrap_response({"id": canonical_id, "deleted": True})


@router.get("/{kind}/unlinked")
async def list_unlinked(
    kind: EntityKind,
    source: str | None = Query(None, description="Source kind: AZ, EU, FAO, FPMA"),
    country_code: str | None = Query(None, description="ISO2 country code"),
    q: str | None = Query(None, description="Name substring"),
    engine: PriceEngine = Depends(get_engine),
):
    entities = engine.list_unlinked(kind, source=source, country_code=country_code, q=q)
    data = [e.model_dump(mode="json") for e in entities]
    return wrap_response(data, total_count=len(data), source=source)


@router.put("/{kind}/{source_id}/link")
async def link_entity(
    kind: EntityKind,
    source_id: str,
    canonical_id: str | None = Body(None, embed=True),
    engine: PriceEngine = Depends(get_engine),
):
    entity = engine.link_entity(kind, source_id, canonical_id)
    return wrap_response(entity.model_dump(mode="json"))


@router.delete("/{kind}/{source_id}/link")
async def unlink_entity(
    kind: EntityKind,
    source_id: str,
    engine: PriceEngine = Depends(get_engine),
):
    entity = engine.unlink_entity(kind, source_id)
    return wrap_response(entity.model_dump(mode="json"))
