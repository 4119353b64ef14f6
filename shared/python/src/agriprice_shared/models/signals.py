"""
models/signals.py — Pydantic model for the price_signals table.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel

from agriprice_shared.constants import SignalStatus, SourceKind

SignalKey = tuple[str, str | None, str, str, str | None, str]


class PriceSignal(BaseModel):
    """
    Matches the price_signals table row.

    One row per price series, keyed by (canonical_product_id,
    canonical_variety_id, canonical_country_id, canonical_market_id,
    market_type_code, source). Prices are per base unit in the base
    currency; every *_change is the percent change of current_price against
    that reference price, rounded to two decimals.
    """

    canonical_product_id: str
    canonical_variety_id: str | None = None
    canonical_country_id: str
    canonical_market_id: str
    market_type_code: str | None = None
    source: SourceKind
    as_of: date
    currency: str = "USD"
    unit: str = "kg"

    current_price: float
    current_price_date: date
    previous_price: float | None = None
    month_ago_price: float | None = None
    three_month_ago_price: float | None = None
    six_month_ago_price: float | None = None
    year_ago_price: float | None = None

    month_change: float | None = None
    three_month_change: float | None = None
    six_month_change: float | None = None
    year_change: float | None = None

    month_status: SignalStatus = "STABLE"
    three_month_status: SignalStatus = "STABLE"
    six_month_status: SignalStatus = "STABLE"
    year_status: SignalStatus = "STABLE"

    @property
    def key(self) -> SignalKey:
        return (
            self.canonical_product_id,
            self.canonical_variety_id,
            self.canonical_country_id,
            self.canonical_market_id,
            self.market_type_code,
            self.source,
        )

    @property
    def statuses(self) -> tuple[SignalStatus, ...]:
        return (self.month_status, self.three_month_status, self.six_month_status, self.year_status)

    @property
    def is_changed(self) -> bool:
        return any(s != "STABLE" for s in self.statuses)

    @property
    def priority(self) -> int:
        """Number of moved horizons among 1M / 3M / 6M."""
        return sum(1 for s in self.statuses[:3] if s != "STABLE")

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "PriceSignal":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump()
