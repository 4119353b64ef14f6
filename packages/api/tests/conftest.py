"""Shared test fixtures for agriprice-api."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from agriprice_shared.constants import EntityKind
from agriprice_shared.models import CanonicalCountry, CanonicalMarket, CanonicalProduct
from agriprice_engine.loaders.memory_store import InMemoryRepository
from agriprice_engine.service import PriceEngine

AZ_BASE = {
    "source": "AZ",
    "product_code": "12",
    "product_name": "Alma",
    "market_code": "4",
    "market_name": "Bakı, Keşlə bazarı",
    "price_stage": "TOPDAN",
}

AZ_ROWS = [
    {**AZ_BASE, "price_date": "2024-01-02", "price_min": 9.0, "price_avg": 10.0, "price_max": 13.0},
    {**AZ_BASE, "price_date": "2024-01-04", "price_min": 11.0, "price_avg": 12.0, "price_max": 14.0},
    {**AZ_BASE, "price_date": "2024-01-08", "price_min": 10.0, "price_avg": 11.0, "price_max": 12.0},
]


@pytest.fixture
def engine() -> PriceEngine:
    """Seeded engine over an in-memory repository with a small catalog and AZ apple prices."""
    repo = InMemoryRepository()
    eng = PriceEngine(repo, threshold=0.8)
    eng.seed()
    repo.add_canonical(
        EntityKind.PRODUCT,
        CanonicalProduct(id="prod-apple", slug="apple", name_en="Apple", name_az="Alma"),
    )
    repo.add_canonical(
        EntityKind.PRODUCT,
        CanonicalProduct(id="prod-pear", slug="pear", name_en="Pear", name_az="Armud"),
    )
    repo.add_canonical(
        EntityKind.COUNTRY, CanonicalCountry(id="country-az", iso2="AZ", name_en="Azerbaijan")
    )
    repo.add_canonical(
        EntityKind.MARKET,
        CanonicalMarket(id="market-baku", country_id="country-az", name="Baku Keshla market"),
    )
    eng.ingest(AZ_ROWS)
    return eng


@pytest.fixture
def client(engine):
    from agriprice_api.app import app
    from agriprice_api.dependencies import get_engine

    app.dependency_overrides[get_engine] = lambda: engine
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
