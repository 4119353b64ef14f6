"""
sources/az.py — National ministry feed (agro.gov.az).

Daily market prices per product (optionally per variety), market and price
stage, published as a min / avg / max triple in AZN per kg.

Example row:
    {"source": "AZ", "product_code": "12", "product_name": "Alma",
     "variety_code": "31", "variety_name": "Qızıl əhmədi",
     "market_code": "4", "market_name": "Bakı, Keşlə bazarı",
     "price_stage": "TOPDAN", "price_date": "2024-01-02",
     "price_min": 1.2, "price_avg": 1.4, "price_max": 1.6}
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import Field

from agriprice_shared.constants import EntityKind, normalize_market_type
from agriprice_shared.models import RawObservation, SourceEntity
from agriprice_engine.sources.base import BaseSourceRecord, source_entity_id
from agriprice_engine.transforms.conversion import normalize_unit_code

COUNTRY_CODE = "AZ"


class AZSourceRecord(BaseSourceRecord):
    source: Literal["AZ"] = "AZ"
    product_code: str
    product_name: str
    product_name_en: str | None = None
    variety_code: str | None = None
    variety_name: str | None = None
    market_code: str
    market_name: str
    market_type: str | None = None
    price_stage: str
    price_date: date
    price_min: float | None = None
    price_avg: float = Field(gt=0)
    price_max: float | None = None
    currency: str = "AZN"
    unit: str = "kg"

    @property
    def product_id(self) -> str:
        return source_entity_id(self.source, EntityKind.PRODUCT, self.product_code)

    @property
    def variety_id(self) -> str | None:
        if not self.variety_code:
            return None
        return source_entity_id(self.source, EntityKind.VARIETY, self.variety_code)

    def to_observation(self) -> RawObservation:
        return RawObservation(
            source=self.source,
            source_product_id=self.product_id,
            source_variety_id=self.variety_id,
            market_ref=source_entity_id(self.source, EntityKind.MARKET, self.market_code),
            price_stage=self.price_stage,
            period_date=self.price_date,
            value_low=self.price_min,
            value_avg=self.price_avg,
            value_high=self.price_max,
            currency=self.currency,
            unit=normalize_unit_code(self.unit),
        )

    def source_entities(self) -> list[SourceEntity]:
        entities = [
            self._entity(
                EntityKind.PRODUCT,
                self.product_code,
                self.product_name,
                name_en=self.product_name_en,
                country_code=COUNTRY_CODE,
            ),
            self._entity(
                EntityKind.MARKET,
                self.market_code,
                self.market_name,
                country_code=COUNTRY_CODE,
                market_type=normalize_market_type(self.market_type or self.price_stage, self.source),
            ),
            self._price_stage_entity(self.price_stage),
        ]
        if self.variety_code:
            entities.append(
                self._entity(
                    EntityKind.VARIETY,
                    self.variety_code,
                    self.variety_name or self.variety_code,
                    parent_id=self.product_id,
                    country_code=COUNTRY_CODE,
                )
            )
        return entities
