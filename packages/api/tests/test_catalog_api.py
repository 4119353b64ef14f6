"""Tests for catalog, link and matching endpoints."""

from __future__ import annotations


def test_list_unlinked(client):
    response = client.get("/v1/catalog/product/unlinked", params={"source": "AZ"})

    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["total_count"] == 1
    assert body["meta"]["source"] == "AZ"
    assert body["data"][0]["id"] == "AZ:product:12"
    assert body["data"][0]["canonical_id"] is None


def test_list_unlinked_query_filter(client):
    response = client.get("/v1/catalog/market/unlinked", params={"q": "nowhere"})
    assert response.json()["data"] == []


def test_list_canonical(client):
    response = client.get("/v1/catalog/price_stage/canonical")
    assert [r["code"] for r in response.json()["data"]] == [
        "PROCESSING", "PRODUCER", "RETAIL", "WHOLESALE",
    ]


def test_unknown_kind(client):
    response = client.get("/v1/catalog/planet/unlinked")
    assert response.status_code == 422


def test_link_and_unlink(client):
    response = client.put(
        "/v1/catalog/product/AZ:product:12/link", json={"canonical_id": "prod-apple"}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["canonical_id"] == "prod-apple"
    assert data["is_manual"] is True
    assert data["match_score"] == 1.0

    response = client.delete("/v1/catalog/product/AZ:product:12/link")
    assert response.status_code == 200
    assert response.json()["data"]["canonical_id"] is None


def test_link_unknown_canonical(client):
    response = client.put(
        "/v1/catalog/product/AZ:product:12/link", json={"canonical_id": "prod-404"}
    )
    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "NOT_FOUND"
    assert error["details"]["id"] == "prod-404"


def test_delete_market_with_dependents(client):
    client.put("/v1/catalog/market/AZ:market:4/link", json={"canonical_id": "market-baku"})

    response = client.delete("/v1/catalog/market/canonical/market-baku")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "HAS_DEPENDENTS"


def test_delete_unreferenced_canonical(client):
    response = client.delete("/v1/catalog/product/canonical/prod-pear")
    assert response.status_code == 200
    assert response.json()["data"] == {"id": "prod-pear", "deleted": True}


def test_run_matching(client, engine):
    response = client.post("/v1/matching/product")

    assert response.status_code == 200
    summary = response.json()["data"]
    assert summary["matched"] == 1
    assert summary["written"] == 1

    response = client.post("/v1/matching/product")
    assert response.json()["data"]["written"] == 0
