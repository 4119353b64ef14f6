"""
sources/base.py — Base class for per-source record shapes.

Every source deposits records in its own shape. A concrete record must
implement:
  to_observation()   — the RawObservation this record carries
  source_entities()  — the source-side taxonomy rows it references
                       (product, variety, market or country, price stage)

Source entity ids are namespaced by source and kind so that ids from
different sources never collide:

    source_entity_id("AZ", EntityKind.PRODUCT, "12")   # "AZ:product:12"
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict

from agriprice_shared.constants import EntityKind, SourceKind, normalize_market_type
from agriprice_shared.models import RawObservation, SourceEntity


def source_entity_id(source: str, kind: EntityKind, code: str) -> str:
    return f"{source}:{kind.value}:{code.strip()}"


def price_stage_id(source: str, raw_stage: str) -> str:
    """Id of the source price-stage entity behind an observation's price_stage."""
    return source_entity_id(source, EntityKind.PRICE_STAGE, raw_stage.strip().upper())


class BaseSourceRecord(BaseModel, ABC):
    """Abstract base for source record shapes (discriminated on `source`)."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)

    source: SourceKind

    @abstractmethod
    def to_observation(self) -> RawObservation:
        """Map this record onto the common observation shape."""

    @abstractmethod
    def source_entities(self) -> list[SourceEntity]:
        """Source taxonomy rows referenced by this record."""

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _entity(self, kind: EntityKind, code: str, name: str, **fields: object) -> SourceEntity:
        return SourceEntity(
            id=source_entity_id(self.source, kind, code),
            kind=kind,
            source=self.source,
            code=code,
            name=name,
            **fields,
        )

    def _price_stage_entity(self, raw_stage: str) -> SourceEntity:
        return SourceEntity(
            id=price_stage_id(self.source, raw_stage),
            kind=EntityKind.PRICE_STAGE,
            source=self.source,
            code=raw_stage.strip().upper(),
            name=raw_stage,
            market_type=normalize_market_type(raw_stage, self.source),
        )
