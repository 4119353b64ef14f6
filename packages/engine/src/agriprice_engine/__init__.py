"""
agriprice_engine — canonical identity, matching, aggregation and conversion.

Architecture:
  identity.py    — canonical identity store (one per entity kind), manual links
  transforms/    — name normalization/similarity, period grouping, conversion
  pipelines/     — batch jobs: entity matching, aggregate recomputation,
                   price-movement signals
  sources/       — per-source record shapes -> RawObservation
  loaders/       — repository interface with DuckDB and in-memory backends
  comparison.py  — cross-source comparison series, converted on read
  service.py     — PriceEngine: the operation surface used by the CLI and API
  utils/         — structlog configuration, tenacity retry helper

Quick start:
    from agriprice_engine.loaders.memory_store import InMemoryRepository
    from agriprice_engine.service import PriceEngine

    engine = PriceEngine(InMemoryRepository())
    engine.ingest(records)
    engine.run_matching("product")
    engine.recompute_all_aggregates()

CLI:
    agriprice init-db
    agriprice seed
    agriprice ingest observations.ndjson
    agriprice match product
    agriprice recompute
    agriprice signals

Shared code from agriprice_shared:
    from agriprice_shared.config import settings
    from agriprice_shared.db import get_duckdb_connection
    from agriprice_shared.models import RawObservation, AggregateRecord
    from agriprice_shared.constants import normalize_market_type, PRICE_STAGES
"""

__version__ = "0.1.0"
