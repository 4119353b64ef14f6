"""
agriprice_shared — shared settings, registries, and models for the agriprice engine.

Usage:
    from agriprice_shared.config import settings
    from agriprice_shared.db import get_duckdb_connection
    from agriprice_shared.models import RawObservation, AggregateRecord, SourceEntity
    from agriprice_shared.constants import PRICE_STAGES, normalize_market_type
    from agriprice_shared.time_utils import iso_week_bounds, month_bounds
"""

__version__ = "0.1.0"
