"""
sources/eu.py — Regional trade-bloc statistical office (Eurostat agri-food prices).

Country-level prices per product, either annual (period omitted) or
monthly (period 1–12), in EUR per 100 kg. Annual rows are dated January
1st, monthly rows the first of their month.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from agriprice_shared.constants import EntityKind
from agriprice_shared.models import RawObservation, SourceEntity
from agriprice_shared.time_utils import parse_period_date
from agriprice_engine.sources.base import BaseSourceRecord, source_entity_id
from agriprice_engine.transforms.conversion import normalize_unit_code


class EUSourceRecord(BaseSourceRecord):
    source: Literal["EU"] = "EU"
    product_code: str
    product_name: str
    country_code: str
    country_name: str | None = None
    year: int
    period: int | None = Field(default=None, ge=1, le=12)
    price: float = Field(gt=0)
    price_stage: str = "PRODUCER"
    currency: str = "EUR"
    unit: str = "100kg"

    @field_validator("country_code")
    @classmethod
    def upper_country(cls, v: str) -> str:
        return v.upper()

    def to_observation(self) -> RawObservation:
        return RawObservation(
            source=self.source,
            source_product_id=source_entity_id(self.source, EntityKind.PRODUCT, self.product_code),
            market_ref=source_entity_id(self.source, EntityKind.COUNTRY, self.country_code),
            price_stage=self.price_stage,
            period_date=parse_period_date(self.year, self.period),
            value_avg=self.price,
            currency=self.currency,
            unit=normalize_unit_code(self.unit),
        )

    def source_entities(self) -> list[SourceEntity]:
        return [
            self._entity(EntityKind.PRODUCT, self.product_code, self.product_name),
            self._entity(
                EntityKind.COUNTRY,
                self.country_code,
                self.country_name or self.country_code,
                country_code=self.country_code,
            ),
            self._price_stage_entity(self.price_stage),
        ]
