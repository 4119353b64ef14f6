"""
models/observations.py — Pydantic model for raw price observations.

A RawObservation is one price reading deposited by the ingestion
collaborator. It is immutable once ingested; the engine only reads it.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from agriprice_shared.constants import SourceKind
from agriprice_shared.time_utils import coerce_date


class RawObservation(BaseModel):
    """
    One price reading from one source.

    market_ref is the source market id, or the source country id for
    sources that only report country-level prices (EU, FAO).
    value_low / value_high default to value_avg when a source publishes a
    single figure.
    """

    model_config = ConfigDict(frozen=True)

    source: SourceKind
    source_product_id: str
    source_variety_id: str | None = None
    market_ref: str
    price_stage: str
    period_date: date
    value_low: float
    value_avg: float
    value_high: float
    currency: str
    unit: str

    @model_validator(mode="before")
    @classmethod
    def fill_range(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            avg = data.get("value_avg")
            if data.get("value_low") is None:
                data["value_low"] = avg
            if data.get("value_high") is None:
                data["value_high"] = avg
        return data

    @field_validator("period_date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> Any:
        return coerce_date(v) if v is not None else v

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def check_range(self) -> "RawObservation":
        if self.value_low > self.value_avg or self.value_avg > self.value_high:
            raise ValueError(
                f"value_low <= value_avg <= value_high violated: "
                f"{self.value_low} / {self.value_avg} / {self.value_high}"
            )
        return self

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "RawObservation":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump()

