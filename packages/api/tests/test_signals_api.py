"""Tests for price-signal endpoints."""

from __future__ import annotations

import pytest


@pytest.fixture
def linked(client):
    client.put("/v1/catalog/product/AZ:product:12/link", json={"canonical_id": "prod-apple"})
    client.put("/v1/catalog/market/AZ:market:4/link", json={"canonical_id": "market-baku"})
    return client


def test_update_then_list(linked):
    response = linked.post("/v1/price-signals/update", params={"as_of": "2024-01-31"})
    assert response.status_code == 200
    assert response.json()["data"]["series"] == 1

    response = linked.get("/v1/price-signals", params={"status": "all"})
    body = response.json()
    assert body["meta"] == {"total_count": 1, "currency": "USD", "unit": "kg"}
    [signal] = body["data"]
    assert signal["canonical_market_id"] == "market-baku"
    assert signal["current_price_date"] == "2024-01-08"
    assert signal["current_price"] == pytest.approx(11.0 / 1.70)
    assert signal["month_ago_price"] == pytest.approx(10.0 / 1.70)
    assert signal["month_status"] == "INCREASED"
    assert signal["priority"] == 1


def test_status_filters(linked):
    linked.post("/v1/price-signals/update", params={"as_of": "2024-01-31"})

    changed = linked.get("/v1/price-signals").json()["data"]
    stable = linked.get("/v1/price-signals", params={"status": "stable"}).json()["data"]

    assert [s["canonical_product_id"] for s in changed] == ["prod-apple"]
    assert stable == []


def test_invalid_status(client):
    response = client.get("/v1/price-signals", params={"status": "moved"})
    assert response.status_code == 422
