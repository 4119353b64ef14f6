"""
models/aggregates.py — Pydantic model for the price_aggregates table.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, Field, model_validator

from agriprice_shared.constants import PeriodType


class AggregateRecord(BaseModel):
    """
    Matches the price_aggregates table row.

    Unique key is (canonical_product_id, market_type_code, period_type,
    period, year). period is the ISO week for WEEKLY records, the month for
    MONTHLY records, and None for ANNUAL records; year is the ISO week-year
    for WEEKLY records and the calendar year otherwise.

    Prices stay in the source-native currency/unit; conversion happens on
    read.
    """

    canonical_product_id: str
    market_type_code: str
    period_type: PeriodType
    period: int | None = None
    year: int
    avg_price: float
    min_price: float
    max_price: float
    sample_count: int = Field(ge=1)
    start_date: date
    end_date: date
    currency: str
    unit: str

    @model_validator(mode="after")
    def check_bounds(self) -> "AggregateRecord":
        if self.start_date > self.end_date:
            raise ValueError("start_date after end_date")
        if (self.period_type == "ANNUAL") != (self.period is None):
            raise ValueError("period must be None exactly for ANNUAL records")
        return self

    @property
    def key(self) -> tuple[str, str, str, int | None, int]:
        return (
            self.canonical_product_id,
            self.market_type_code,
            self.period_type,
            self.period,
            self.year,
        )

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "AggregateRecord":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump()
