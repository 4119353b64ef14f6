"""
agriprice_shared.models — Pydantic models matching each database table.

These models are used by:
- packages/engine: validate data before writing through a repository
- packages/api: serialize query results into API responses

Table-backed models provide:
  .from_db_row(row: dict) -> Model
  .to_insert_dict() -> dict
"""

from agriprice_shared.models.aggregates import AggregateRecord
from agriprice_shared.models.catalog import (
    CANONICAL_MODELS,
    CanonicalCountry,
    CanonicalMarket,
    CanonicalPriceStage,
    CanonicalProduct,
    CanonicalRecord,
    CanonicalVariety,
    MatchCandidate,
    SourceEntity,
)
from agriprice_shared.models.observations import RawObservation
from agriprice_shared.models.rates import (
    CurrencyRate,
    RateTable,
    UnitRate,
    default_rate_table,
)
from agriprice_shared.models.signals import PriceSignal

__all__ = [
    "AggregateRecord",
    "CANONICAL_MODELS",
    "CanonicalCountry",
    "CanonicalMarket",
    "CanonicalPriceStage",
    "CanonicalProduct",
    "CanonicalRecord",
    "CanonicalVariety",
    "CurrencyRate",
    "MatchCandidate",
    "PriceSignal",
    "RateTable",
    "RawObservation",
    "SourceEntity",
    "UnitRate",
    "default_rate_table",
]
