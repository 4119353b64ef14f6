"""
models/catalog.py — Pydantic models for canonical records and source entities.

Canonical records (products, varieties, markets, countries, price stages)
are long-lived reference data. Source entities are the per-source
taxonomy rows (an AZ product, an FPMA market, ...) that point at most at
one canonical record each.
"""

from __future__ import annotations

from typing import Any, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from agriprice_shared.constants import EntityKind, SourceKind


def _new_id() -> str:
    return str(uuid4())


class _CanonicalBase(BaseModel):
    id: str = Field(default_factory=_new_id)
    aliases: list[str] = Field(default_factory=list)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]):
        data = dict(row)
        if data.get("aliases") is None:
            data["aliases"] = []
        return cls(**data)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump()

    def display_names(self) -> list[str]:
        """Every name the matcher may compare against."""
        names = [
            getattr(self, attr, None)
            for attr in ("name", "name_en", "name_az", "name_ru")
        ]
        return [n for n in [*names, *self.aliases] if n]


class CanonicalProduct(_CanonicalBase):
    """Language-neutral product identity (e.g. "apple")."""

    slug: str
    name_en: str
    name_az: str | None = None
    name_ru: str | None = None
    category: str | None = None
    default_unit: str = "kg"


class CanonicalVariety(_CanonicalBase):
    """A sub-identity of a canonical product (e.g. a cultivar)."""

    product_id: str
    slug: str
    name_en: str
    name_az: str | None = None
    name_ru: str | None = None


class CanonicalCountry(_CanonicalBase):
    iso2: str
    name_en: str
    name_az: str | None = None
    name_ru: str | None = None

    @field_validator("iso2")
    @classmethod
    def upper_iso2(cls, v: str) -> str:
        return v.strip().upper()


class CanonicalMarket(_CanonicalBase):
    """
    A named location, or a country-/region-wide average.

    (country_id, name) is unique.
    """

    country_id: str
    name: str
    name_en: str | None = None
    market_type: str | None = None
    is_national_avg: bool = False


class CanonicalPriceStage(_CanonicalBase):
    code: str
    name_en: str
    name_az: str | None = None
    name_ru: str | None = None
    description: str | None = None
    sort_order: int = 0


CanonicalRecord = Union[
    CanonicalProduct,
    CanonicalVariety,
    CanonicalMarket,
    CanonicalCountry,
    CanonicalPriceStage,
]

CANONICAL_MODELS: dict[EntityKind, type[_CanonicalBase]] = {
    EntityKind.PRODUCT: CanonicalProduct,
    EntityKind.VARIETY: CanonicalVariety,
    EntityKind.MARKET: CanonicalMarket,
    EntityKind.COUNTRY: CanonicalCountry,
    EntityKind.PRICE_STAGE: CanonicalPriceStage,
}


class SourceEntity(BaseModel):
    """
    A source-specific entity of one kind.

    canonical_id is the single link into the canonical graph. For source
    products, canonical_variety_id optionally narrows the link to a variety
    of the linked canonical product. parent_id is the source product of a
    source variety and scopes variety matching.
    """

    id: str
    kind: EntityKind
    source: SourceKind
    code: str | None = None
    name: str
    name_en: str | None = None
    aliases: list[str] = Field(default_factory=list)
    parent_id: str | None = None
    country_code: str | None = None
    market_type: str | None = None
    canonical_id: str | None = None
    canonical_variety_id: str | None = None
    match_score: float | None = Field(default=None, ge=0.0, le=1.0)
    is_manual: bool = False

    @property
    def is_linked(self) -> bool:
        return self.canonical_id is not None

    def display_names(self) -> list[str]:
        return [n for n in [self.name, self.name_en, *self.aliases] if n]

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "SourceEntity":
        data = dict(row)
        if data.get("aliases") is None:
            data["aliases"] = []
        return cls(**data)

    def to_insert_dict(self) -> dict[str, Any]:
        data = self.model_dump()
        data["kind"] = self.kind.value
        return data


class MatchCandidate(BaseModel):
    """Transient matcher output, realized as a link + score on the source entity."""

    source_entity_id: str
    canonical_candidate_id: str | None
    score: float = Field(ge=0.0, le=1.0)
    is_manual: bool = False
