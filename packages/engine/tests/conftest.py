"""
tests/conftest.py — Shared pytest fixtures for the engine test suite.

Provides:
  repo            — empty InMemoryRepository
  engine          — PriceEngine over `repo`, price stages and rates seeded
  duck_repo       — DuckDBRepository over a private :memory: connection
  az_rows         — AZ feed rows for "Alma" in one Baku market
  catalog         — canonical apple / pear products, AZ country, Baku market
  make_obs()      — factory for RawObservations with sensible defaults
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from agriprice_shared.constants import EntityKind
from agriprice_shared.db import open_duckdb
from agriprice_shared.models import (
    CanonicalCountry,
    CanonicalMarket,
    CanonicalProduct,
    RawObservation,
)
from agriprice_engine.loaders.duckdb_store import DuckDBRepository
from agriprice_engine.loaders.memory_store import InMemoryRepository
from agriprice_engine.service import PriceEngine


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def engine(repo: InMemoryRepository) -> PriceEngine:
    eng = PriceEngine(repo, threshold=0.8)
    eng.seed()
    return eng


@pytest.fixture
def duck_repo():
    conn = open_duckdb(":memory:")
    repository = DuckDBRepository(conn)
    repository.init_schema()
    yield repository
    conn.close()


# ---------------------------------------------------------------------------
# Canonical catalog
# ---------------------------------------------------------------------------

@pytest.fixture
def catalog(repo: InMemoryRepository) -> dict[str, Any]:
    """Canonical records shared by identity, matching and aggregation tests."""
    apple = CanonicalProduct(id="prod-apple", slug="apple", name_en="Apple", name_az="Alma")
    pear = CanonicalProduct(id="prod-pear", slug="pear", name_en="Pear", name_az="Armud")
    azerbaijan = CanonicalCountry(id="country-az", iso2="AZ", name_en="Azerbaijan")
    germany = CanonicalCountry(id="country-de", iso2="DE", name_en="Germany")
    baku = CanonicalMarket(
        id="market-baku",
        country_id="country-az",
        name="Baku Keshla market",
        market_type="WHOLESALE",
    )
    repo.add_canonical(EntityKind.PRODUCT, apple)
    repo.add_canonical(EntityKind.PRODUCT, pear)
    repo.add_canonical(EntityKind.COUNTRY, azerbaijan)
    repo.add_canonical(EntityKind.COUNTRY, germany)
    repo.add_canonical(EntityKind.MARKET, baku)
    return {"apple": apple, "pear": pear, "az": azerbaijan, "de": germany, "baku": baku}


# ---------------------------------------------------------------------------
# Source rows
# ---------------------------------------------------------------------------

@pytest.fixture
def az_rows() -> list[dict[str, Any]]:
    """Three wholesale apple prices: two in ISO week 2024-W01, one in 2024-W02."""
    base = {
        "source": "AZ",
        "product_code": "12",
        "product_name": "Alma",
        "market_code": "4",
        "market_name": "Bakı, Keşlə bazarı",
        "price_stage": "TOPDAN",
    }
    return [
        {**base, "price_date": "2024-01-02", "price_min": 9.0, "price_avg": 10.0, "price_max": 13.0},
        {**base, "price_date": "2024-01-04", "price_min": 11.0, "price_avg": 12.0, "price_max": 14.0},
        {**base, "price_date": "2024-01-08", "price_min": 10.0, "price_avg": 11.0, "price_max": 12.0},
    ]


@pytest.fixture
def make_obs():
    def _make(**overrides: Any) -> RawObservation:
        data: dict[str, Any] = {
            "source": "AZ",
            "source_product_id": "AZ:product:12",
            "market_ref": "AZ:market:4",
            "price_stage": "TOPDAN",
            "period_date": date(2024, 1, 2),
            "value_low": 9.0,
            "value_avg": 10.0,
            "value_high": 13.0,
            "currency": "AZN",
            "unit": "kg",
        }
        data.update(overrides)
        return RawObservation(**data)

    return _make
