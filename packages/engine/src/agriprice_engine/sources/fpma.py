"""
sources/fpma.py — Global food-price monitoring service (FAO GIEWS FPMA).

Market-level retail / wholesale price series. Each series carries its own
currency and a free-text measure unit ("5 kg", "Libra", "Dozen", ...);
values are divided by the unit factor (times the series conversion factor)
so that stored observations are per base unit.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import Field, field_validator

from agriprice_shared.constants import EntityKind, normalize_market_type
from agriprice_shared.models import RawObservation, SourceEntity
from agriprice_engine.sources.base import BaseSourceRecord, source_entity_id
from agriprice_engine.transforms.conversion import parse_unit_label


class FPMASourceRecord(BaseSourceRecord):
    source: Literal["FPMA"] = "FPMA"
    commodity_code: str
    commodity_name: str
    country_code: str
    country_name: str | None = None
    market_code: str
    market_name: str
    price_type: str = "Retail"
    price_date: date
    value: float = Field(gt=0)
    currency: str
    measure_unit_label: str = "kg"
    conversion_factor: float = Field(default=1.0, gt=0)

    @field_validator("country_code")
    @classmethod
    def upper_country(cls, v: str) -> str:
        return v.upper()

    @property
    def unit_factor(self) -> tuple[str, float]:
        unit, factor = parse_unit_label(self.measure_unit_label)
        return unit, factor * self.conversion_factor

    def to_observation(self) -> RawObservation:
        unit, factor = self.unit_factor
        return RawObservation(
            source=self.source,
            source_product_id=source_entity_id(self.source, EntityKind.PRODUCT, self.commodity_code),
            market_ref=source_entity_id(self.source, EntityKind.MARKET, self.market_code),
            price_stage=self.price_type,
            period_date=self.price_date,
            value_avg=self.value / factor,
            currency=self.currency,
            unit=unit,
        )

    def source_entities(self) -> list[SourceEntity]:
        return [
            self._entity(EntityKind.PRODUCT, self.commodity_code, self.commodity_name),
            self._entity(
                EntityKind.MARKET,
                self.market_code,
                self.market_name,
                country_code=self.country_code,
                market_type=normalize_market_type(self.price_type, self.source),
            ),
            self._price_stage_entity(self.price_type),
        ]
