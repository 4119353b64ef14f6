from fastapi import APIRouter

from agriprice_api.routers.v1 import (
    aggregates,
    catalog,
    comparison,
    conversion,
    matching,
    signals,
)

v1_router = APIRouter(prefix="/v1")

v1_router.include_router(catalog.router)
v1_router.include_router(matching.router)
v1_router.include_router(aggregates.router)
v1_router.include_router(conversion.router)
v1_router.include_router(comparison.router)
v1_router.include_router(signals.router)
