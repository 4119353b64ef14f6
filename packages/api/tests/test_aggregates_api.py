"""Tests for aggregate endpoints."""

from __future__ import annotations

import pytest


@pytest.fixture
def linked(client):
    client.post("/v1/matching/product")
    return client


def test_recompute_product(linked):
    response = linked.post("/v1/aggregates/prod-apple/recompute")
    assert response.status_code == 200
    assert response.json()["data"] == {"product_id": "prod-apple", "aggregates_written": 4}


def test_recompute_unknown_product(client):
    response = client.post("/v1/aggregates/prod-404/recompute")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_recompute_all(linked):
    response = linked.post("/v1/aggregates/recompute")
    data = response.json()["data"]
    assert data["total"] == 4
    assert data["products_processed"] == 1
    assert data["status"] == "success"


def test_list_aggregates_filters(linked):
    linked.post("/v1/aggregates/recompute")

    response = linked.get(
        "/v1/aggregates",
        params={"product_id": "prod-apple", "period_type": "WEEKLY", "market_type": "wholesale"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["total_count"] == 2
    first = body["data"][0]
    assert (first["year"], first["period"], first["sample_count"]) == (2024, 1, 2)
    assert first["avg_price"] == pytest.approx(11.0)
    assert first["start_date"] == "2024-01-01"


def test_list_aggregates_bad_period_type(client):
    response = client.get("/v1/aggregates", params={"period_type": "DAILY"})
    assert response.status_code == 422
