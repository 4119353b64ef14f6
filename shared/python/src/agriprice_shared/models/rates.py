"""
models/rates.py — Pydantic models for the currency and unit rate tables.

Currency rates pivot through one base currency ("1 base = rate_to_base of
this currency"); unit rates pivot through one base unit per dimension
("1 base unit = conversion_rate of this unit").
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class CurrencyRate(BaseModel):
    """Matches the currencies table row."""

    code: str
    rate_to_base: float = Field(gt=0)
    symbol: str | None = None
    name_en: str | None = None
    name_az: str | None = None

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "CurrencyRate":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump()


class UnitRate(BaseModel):
    """
    Matches the units table row.

    base_unit names the dimension: units sharing a base_unit can be
    converted into each other ("kg" for mass, "l" for volume, "piece").
    """

    code: str
    conversion_rate: float = Field(gt=0)
    base_unit: str
    category: str | None = None
    symbol: str | None = None
    name_en: str | None = None
    name_az: str | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "UnitRate":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump()


class RateTable(BaseModel):
    base_currency: str = "USD"
    base_unit: str = "kg"
    currencies: dict[str, CurrencyRate] = Field(default_factory=dict)
    units: dict[str, UnitRate] = Field(default_factory=dict)

    @classmethod
    def from_rows(
        cls,
        currencies: list[CurrencyRate],
        units: list[UnitRate],
        *,
        base_currency: str = "USD",
        base_unit: str = "kg",
    ) -> "RateTable":
        return cls(
            base_currency=base_currency,
            base_unit=base_unit,
            currencies={c.code: c for c in currencies},
            units={u.code: u for u in units},
        )


DEFAULT_CURRENCIES: list[CurrencyRate] = [
    CurrencyRate(code="USD", symbol="$", rate_to_base=1.0, name_en="US Dollar", name_az="ABŞ Dolları"),
    CurrencyRate(code="EUR", symbol="€", rate_to_base=0.92, name_en="Euro", name_az="Avro"),
    CurrencyRate(code="AZN", symbol="₼", rate_to_base=1.70, name_en="Azerbaijani Manat", name_az="Azərbaycan Manatı"),
    CurrencyRate(code="RUB", symbol="₽", rate_to_base=90.0, name_en="Russian Ruble", name_az="Rus Rublu"),
    CurrencyRate(code="TRY", symbol="₺", rate_to_base=32.0, name_en="Turkish Lira", name_az="Türk Lirəsi"),
    CurrencyRate(code="GBP", symbol="£", rate_to_base=0.79, name_en="British Pound", name_az="İngilis Funtu"),
]

DEFAULT_UNITS: list[UnitRate] = [
    UnitRate(code="kg", conversion_rate=1.0, base_unit="kg", category="weight", symbol="kg", name_en="Kilogram", name_az="Kiloqram"),
    UnitRate(code="100kg", conversion_rate=0.01, base_unit="kg", category="weight", symbol="100kg", name_en="100 Kilograms", name_az="100 Kiloqram"),
    UnitRate(code="ton", conversion_rate=0.001, base_unit="kg", category="weight", symbol="t", name_en="Tonne", name_az="Ton"),
    UnitRate(code="g", conversion_rate=1000.0, base_unit="kg", category="weight", symbol="g", name_en="Gram", name_az="Qram"),
    UnitRate(code="lb", conversion_rate=2.20462, base_unit="kg", category="weight", symbol="lb", name_en="Pound", name_az="Funt"),
    UnitRate(code="l", conversion_rate=1.0, base_unit="l", category="volume", symbol="L", name_en="Liter", name_az="Litr"),
    UnitRate(code="100l", conversion_rate=0.01, base_unit="l", category="volume", symbol="100L", name_en="100 Liters", name_az="100 Litr"),
    UnitRate(code="piece", conversion_rate=1.0, base_unit="piece", category="piece", symbol="ədəd", name_en="Piece", name_az="Ədəd"),
]


def default_rate_table() -> RateTable:
    """Fallback USD / kg based table used when no rates are stored."""
    return RateTable.from_rows(DEFAULT_CURRENCIES, DEFAULT_UNITS)
