"""
sources/fao.py — Global statistics body (FAOSTAT producer prices).

Annual country-level producer prices per item, in USD per tonne. Rows are
dated January 1st of their year; the element label ("Producer Price
(USD/tonne)") doubles as the price stage.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from agriprice_shared.constants import EntityKind
from agriprice_shared.models import RawObservation, SourceEntity
from agriprice_shared.time_utils import parse_period_date
from agriprice_engine.sources.base import BaseSourceRecord, source_entity_id
from agriprice_engine.transforms.conversion import normalize_unit_code


class FAOSourceRecord(BaseSourceRecord):
    source: Literal["FAO"] = "FAO"
    item_code: str
    item_name: str
    area_code: str
    area_name: str | None = None
    year: int
    element: str = "Producer Price (USD/tonne)"
    value: float = Field(gt=0)
    currency: str = "USD"
    unit: str = "tonne"

    @field_validator("area_code")
    @classmethod
    def upper_area(cls, v: str) -> str:
        return v.upper()

    def to_observation(self) -> RawObservation:
        return RawObservation(
            source=self.source,
            source_product_id=source_entity_id(self.source, EntityKind.PRODUCT, self.item_code),
            market_ref=source_entity_id(self.source, EntityKind.COUNTRY, self.area_code),
            price_stage=self.element,
            period_date=parse_period_date(self.year),
            value_avg=self.value,
            currency=self.currency,
            unit=normalize_unit_code(self.unit),
        )

    def source_entities(self) -> list[SourceEntity]:
        return [
            self._entity(EntityKind.PRODUCT, self.item_code, self.item_name),
            self._entity(
                EntityKind.COUNTRY,
                self.area_code,
                self.area_name or self.area_code,
                country_code=self.area_code,
            ),
            self._price_stage_entity(self.element),
        ]
