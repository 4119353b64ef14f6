"""
transforms/conversion.py — Currency and unit conversion through a common pivot.

Currencies pivot through the base currency of the rate table, units through
the base unit of their dimension:

    currency:  value / from.rate_to_base * to.rate_to_base
    unit:      value * from.conversion_rate / to.conversion_rate

convert() never raises: an unknown code or a cross-dimension unit pair
returns the original value with converted=False and the error attached.
convert_currency() / convert_unit() are the strict building blocks.

Usage:
    from agriprice_engine.transforms.conversion import DEFAULT_RATES, convert

    result = convert(150.0, "EUR", "AZN", "€/100kg", "kg", DEFAULT_RATES)
    if result.converted:
        print(result.value)
    else:
        print(result.error)

    parse_unit_label("5 kg")   # ("kg", 5.0)
    parse_unit_label("Dozen")  # ("piece", 12.0)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import structlog

from agriprice_shared.constants import CURRENCY_SYMBOLS, UNIT_ALIASES
from agriprice_shared.models import RateTable, default_rate_table
from agriprice_engine.errors import (
    EngineError,
    IncompatibleDimension,
    UnknownCurrencyOrUnit,
)

log = structlog.get_logger(__name__)

DEFAULT_RATES: RateTable = default_rate_table()

_SYMBOL_TO_CODE = {symbol: code for code, symbol in CURRENCY_SYMBOLS.items()}
_CURRENCY_PREFIX = re.compile(
    r"^(?:" + "|".join(sorted(CURRENCY_SYMBOLS, key=len, reverse=True)) + r")\b\s*",
    re.IGNORECASE,
)
_SPACE = re.compile(r"\s+")
_N_KG = re.compile(r"^(\d+(?:\.\d+)?)\s*kg$")


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of a fail-closed conversion."""

    value: float
    converted: bool
    error: EngineError | None = None


# ---------------------------------------------------------------------------
# Code normalization
# ---------------------------------------------------------------------------


def normalize_currency_code(raw: str) -> str:
    """Map "eur" and "€" to "EUR"."""
    s = raw.strip()
    return _SYMBOL_TO_CODE.get(s, s.upper())


def normalize_unit_code(raw: str) -> str:
    """
    Reduce a unit label to a unit code.

    Currency prefixes are stripped ("€/100kg" -> "100kg", "AZN/kg" -> "kg"),
    then aliases are resolved ("tonne" -> "ton", "kiloqram" -> "kg").
    Unknown labels come back lowercased and whitespace-collapsed.
    """
    s = _SPACE.sub(" ", raw.strip().lower())
    if "/" in s:
        s = s.rsplit("/", 1)[1].strip()
    for symbol in CURRENCY_SYMBOLS.values():
        s = s.replace(symbol, "")
    s = _CURRENCY_PREFIX.sub("", s).strip()
    if s in UNIT_ALIASES:
        return UNIT_ALIASES[s]
    compact = s.replace(" ", "")
    return UNIT_ALIASES.get(compact, compact)


def parse_unit_label(label: str) -> tuple[str, float]:
    """
    Parse a price-series unit label into (unit_code, factor).

    The factor is how many unit_code units one labelled unit holds; a price
    per labelled unit divided by the factor is a price per unit_code.
    """
    s = _SPACE.sub(" ", label.strip().lower())

    if s in ("kg", "1 kg"):
        return "kg", 1.0
    match = _N_KG.match(s)
    if match:
        return "kg", float(match.group(1))
    if "100 kg" in s or "100kg" in s:
        return "kg", 100.0
    if s in ("liter", "litre", "l"):
        return "l", 1.0
    if "libra" in s or s == "lb":
        return "kg", 0.4536
    if "spanish quintal" in s:
        return "kg", 46.0
    if "bolivian arroba" in s:
        return "kg", 11.5
    if "dozen" in s:
        return "piece", 12.0
    return normalize_unit_code(s), 1.0


# ---------------------------------------------------------------------------
# Strict conversion
# ---------------------------------------------------------------------------


def convert_currency(value: float, from_currency: str, to_currency: str, rates: RateTable) -> float:
    src = normalize_currency_code(from_currency)
    dst = normalize_currency_code(to_currency)
    if src == dst:
        return value

    src_rate = rates.currencies.get(src)
    dst_rate = rates.currencies.get(dst)
    if src_rate is None or dst_rate is None:
        missing = src if src_rate is None else dst
        raise UnknownCurrencyOrUnit(f"Unknown currency: {missing}", code=missing)
    return value / src_rate.rate_to_base * dst_rate.rate_to_base


def convert_unit(value: float, from_unit: str, to_unit: str, rates: RateTable) -> float:
    src = normalize_unit_code(from_unit)
    dst = normalize_unit_code(to_unit)
    if src == dst:
        return value

    src_rate = rates.units.get(src)
    dst_rate = rates.units.get(dst)
    if src_rate is None or dst_rate is None:
        missing = src if src_rate is None else dst
        raise UnknownCurrencyOrUnit(f"Unknown unit: {missing}", code=missing)
    if src_rate.base_unit != dst_rate.base_unit:
        raise IncompatibleDimension(
            f"Cannot convert {src} ({src_rate.base_unit}) to {dst} ({dst_rate.base_unit})",
            from_unit=src,
            to_unit=dst,
        )
    return value * src_rate.conversion_rate / dst_rate.conversion_rate


# ---------------------------------------------------------------------------
# Fail-closed conversion
# ---------------------------------------------------------------------------


def convert(
    value: float,
    from_currency: str,
    to_currency: str,
    from_unit: str,
    to_unit: str,
    rates: RateTable | None = None,
) -> ConversionResult:
    """
    Convert a price between (currency, unit) pairs without raising.

    Args:
        value:         Price in from_currency per from_unit.
        from_currency: Source currency code or symbol.
        to_currency:   Target currency code or symbol.
        from_unit:     Source unit code or label ("€/100kg", "tonne", ...).
        to_unit:       Target unit code or label.
        rates:         Rate table; DEFAULT_RATES when omitted.

    Returns:
        ConversionResult. On failure value is the unchanged input.
    """
    table = rates or DEFAULT_RATES
    try:
        in_currency = convert_currency(value, from_currency, to_currency, table)
        result = convert_unit(in_currency, from_unit, to_unit, table)
    except (UnknownCurrencyOrUnit, IncompatibleDimension) as exc:
        log.debug(
            "conversion_failed",
            from_currency=from_currency,
            to_currency=to_currency,
            from_unit=from_unit,
            to_unit=to_unit,
            error=exc.message,
        )
        return ConversionResult(value=value, converted=False, error=exc)
    return ConversionResult(value=result, converted=True)


def export_rate_table(rates: RateTable | None = None) -> dict[str, Any]:
    """Client-facing snapshot of the rate table."""
    table = rates or DEFAULT_RATES
    return {
        "currencies": {
            code: {"rateToBase": rate.rate_to_base}
            for code, rate in sorted(table.currencies.items())
        },
        "units": {
            code: {"conversionRate": unit.conversion_rate, "baseUnit": unit.base_unit}
            for code, unit in sorted(table.units.items())
        },
        "baseCurrency": table.base_currency,
        "baseUnit": table.base_unit,
    }
