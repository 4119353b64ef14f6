"""
constants.py — shared constants and registries used across the engine and API.

Source kinds, entity kinds, period types, the canonical price-stage
registry, and the unit-code aliases are defined here so that every caller
consumes one definition instead of re-declaring its own mapping table.
"""

from __future__ import annotations

from enum import Enum
from typing import Final, Literal

# ---------------------------------------------------------------------------
# Source kinds
# ---------------------------------------------------------------------------
SourceKind = Literal["AZ", "EU", "FAO", "FPMA"]

SOURCES: Final[dict[str, dict[str, str]]] = {
    "AZ": {
        "name": "Azərbaycan Kənd Təsərrüfatı Nazirliyi (agro.gov.az)",
        "url": "https://agro.gov.az/",
        "currency": "AZN",
        "unit": "kg",
    },
    "EU": {
        "name": "Eurostat / EC Agri-food data portal",
        "url": "https://agridata.ec.europa.eu/",
        "currency": "EUR",
        "unit": "100kg",
    },
    "FAO": {
        "name": "FAOSTAT producer prices",
        "url": "https://www.fao.org/faostat/",
        "currency": "USD",
        "unit": "ton",
    },
    "FPMA": {
        "name": "FAO GIEWS Food Price Monitoring and Analysis",
        "url": "https://fpma.fao.org/",
        "currency": "USD",
        "unit": "kg",
    },
}

SOURCE_CODES: Final[tuple[str, ...]] = tuple(SOURCES)


class EntityKind(str, Enum):
    """Kinds of entity that take part in the canonical identity graph."""

    PRODUCT = "product"
    VARIETY = "variety"
    MARKET = "market"
    COUNTRY = "country"
    PRICE_STAGE = "price_stage"


# ---------------------------------------------------------------------------
# Aggregation periods
# ---------------------------------------------------------------------------
PeriodType = Literal["WEEKLY", "MONTHLY", "ANNUAL"]

PERIOD_TYPES: Final[tuple[str, ...]] = ("WEEKLY", "MONTHLY", "ANNUAL")

# ---------------------------------------------------------------------------
# Price signals
# ---------------------------------------------------------------------------
SignalStatus = Literal["INCREASED", "DECREASED", "STABLE"]

# Percent change beyond which a series counts as moved
SIGNAL_THRESHOLD_PERCENT: Final[float] = 2.0

# Reference horizon -> (min, max) days before the as-of date, both inclusive
SIGNAL_WINDOWS: Final[dict[str, tuple[int, int]]] = {
    "month": (25, 45),
    "three_month": (80, 100),
    "six_month": (170, 190),
    "year": (350, 380),
}

# Sources with market-level series
SIGNAL_SOURCES: Final[tuple[str, ...]] = ("AZ", "FPMA")

SIGNAL_LOOKBACK_DAYS: Final[int] = 400

# ---------------------------------------------------------------------------
# Canonical price stages / market types
# ---------------------------------------------------------------------------
PRICE_STAGES: Final[dict[str, dict[str, str | int]]] = {
    "WHOLESALE": {
        "name_en": "Wholesale",
        "name_az": "Topdan satış",
        "name_ru": "Оптовая продажа",
        "description": "Wholesale market prices - bulk sales to retailers",
        "sort_order": 1,
    },
    "RETAIL": {
        "name_en": "Retail",
        "name_az": "Pərakəndə satış",
        "name_ru": "Розничная продажа",
        "description": "Retail market prices - sales to end consumers",
        "sort_order": 2,
    },
    "PRODUCER": {
        "name_en": "Producer",
        "name_az": "İstehsalçı qiyməti",
        "name_ru": "Цена производителя",
        "description": "Farm-gate/producer prices - prices received by farmers",
        "sort_order": 3,
    },
    "PROCESSING": {
        "name_en": "Processing",
        "name_az": "Xammal alışı",
        "name_ru": "Закупка сырья",
        "description": "Processing industry purchase prices - raw material procurement",
        "sort_order": 4,
    },
}

# Source vocabulary -> canonical stage code, per source
_SOURCE_STAGE_ALIASES: Final[dict[str, dict[str, str]]] = {
    "AZ": {
        "WHOLESALE": "WHOLESALE",
        "TOPDAN": "WHOLESALE",
        "RETAIL": "RETAIL",
        "PƏRAKƏNDƏ": "RETAIL",
        "PERAKENDE": "RETAIL",
        "FIELD": "PRODUCER",
        "SAHƏ": "PRODUCER",
        "SAHE": "PRODUCER",
        "FARMGATE": "PRODUCER",
        "PROCESSING": "PROCESSING",
        "EMAL": "PROCESSING",
    },
    "FPMA": {
        "RETAIL": "RETAIL",
        "RETAIL_MARKET": "RETAIL",
        "WHOLESALE": "WHOLESALE",
        "WHOLESALE_MARKET": "WHOLESALE",
    },
    "EU": {
        "PRODUCER": "PRODUCER",
        "FARM-GATE": "PRODUCER",
        "WHOLESALE": "WHOLESALE",
        "RETAIL": "RETAIL",
    },
    "FAO": {
        "PRODUCER PRICE (USD/TONNE)": "PRODUCER",
        "PRODUCER PRICE (LCU/TONNE)": "PRODUCER",
        "PRODUCER PRICE (SLC/TONNE)": "PRODUCER",
        "PRODUCER PRICE": "PRODUCER",
    },
}

# Vocabulary shared by every source (checked after the per-source table)
_COMMON_STAGE_ALIASES: Final[dict[str, str]] = {
    "WHOLESALE": "WHOLESALE",
    "RETAIL": "RETAIL",
    "PRODUCER": "PRODUCER",
    "FARMGATE": "PRODUCER",
    "FARM-GATE": "PRODUCER",
    "FARM GATE": "PRODUCER",
    "FIELD": "PRODUCER",
    "FIELD SALE": "PRODUCER",
    "PROCESSING": "PROCESSING",
    "PROCESSING PURCHASE": "PROCESSING",
}


def normalize_market_type(raw: str | None, source: str | None = None) -> str | None:
    """
    Map a source-specific price-stage / market-type string to a canonical code.

    Args:
        raw:    Source vocabulary, e.g. "TOPDAN", "Retail", "farm-gate".
        source: Optional source kind ("AZ", "EU", "FAO", "FPMA") whose
                vocabulary is consulted first.

    Returns:
        One of the PRICE_STAGES codes, or None when the string is unknown.

    Examples:
        normalize_market_type("topdan", "AZ")              -> "WHOLESALE"
        normalize_market_type("RETAIL_MARKET")             -> "RETAIL"
        normalize_market_type("Producer Price (USD/tonne)") -> "PRODUCER"
    """
    if not raw:
        return None
    key = " ".join(raw.strip().upper().replace("_", " ").split())
    underscored = key.replace(" ", "_")

    tables: list[dict[str, str]] = []
    if source and source in _SOURCE_STAGE_ALIASES:
        tables.append(_SOURCE_STAGE_ALIASES[source])
    tables.extend(t for s, t in _SOURCE_STAGE_ALIASES.items() if s != source)
    tables.append(_COMMON_STAGE_ALIASES)

    for table in tables:
        for candidate in (key, underscored):
            if candidate in table:
                return table[candidate]
    return None


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------
UNIT_ALIASES: Final[dict[str, str]] = {
    "kg": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "kiloqram": "kg",
    "1 kg": "kg",
    "100kg": "100kg",
    "100 kg": "100kg",
    "tonne": "ton",
    "tonnes": "ton",
    "ton": "ton",
    "t": "ton",
    "lb": "lb",
    "pound": "lb",
    "funt": "lb",
    "g": "g",
    "gram": "g",
    "qram": "g",
    "l": "l",
    "liter": "l",
    "litre": "l",
    "litr": "l",
    "100l": "100l",
    "100 l": "100l",
    "piece": "piece",
    "ədəd": "piece",
    "unit": "piece",
}

# Currency symbols stripped from unit labels such as "€/100kg"
CURRENCY_SYMBOLS: Final[dict[str, str]] = {
    "AZN": "₼",
    "EUR": "€",
    "USD": "$",
    "RUB": "₽",
    "TRY": "₺",
    "GBP": "£",
}

DATA_UNAVAILABLE_MESSAGE: Final[str] = "data unavailable for this source/period"
