"""
tests/test_identity.py — Tests for the canonical identity store.
"""

from __future__ import annotations

import pytest

from agriprice_shared.constants import EntityKind
from agriprice_shared.models import CanonicalMarket, CanonicalProduct, CanonicalVariety
from agriprice_engine.errors import HasDependents, InvalidLink, NotFound
from agriprice_engine.identity import IdentityStore


@pytest.fixture
def ingested(engine, catalog, az_rows):
    engine.ingest(az_rows)
    return engine


class TestLink:
    def test_manual_link_and_unlink(self, ingested, repo):
        products = IdentityStore(repo, "product")

        linked = products.link("AZ:product:12", "prod-apple")
        assert (linked.canonical_id, linked.match_score, linked.is_manual) == ("prod-apple", 1.0, True)

        cleared = products.unlink("AZ:product:12")
        assert (cleared.canonical_id, cleared.match_score, cleared.is_manual) == (None, None, False)
        assert repo.get_source_entity(EntityKind.PRODUCT, "AZ:product:12") == cleared

    def test_relink_overwrites(self, ingested, repo):
        products = IdentityStore(repo, EntityKind.PRODUCT)
        products.link("AZ:product:12", "prod-apple")
        products.link("AZ:product:12", "prod-pear")
        assert products.linked_to("prod-apple") == []
        assert [e.id for e in products.linked_to("prod-pear")] == ["AZ:product:12"]

    def test_automatic_link_records_score(self, ingested, repo):
        entity = IdentityStore(repo, "product").link(
            "AZ:product:12", "prod-apple", manual=False, score=0.91
        )
        assert entity.match_score == 0.91
        assert entity.is_manual is False

    @pytest.mark.parametrize(
        "source_id, canonical_id",
        [("AZ:product:404", "prod-apple"), ("AZ:product:12", "prod-404")],
    )
    def test_unknown_ids(self, ingested, repo, source_id, canonical_id):
        with pytest.raises(NotFound):
            IdentityStore(repo, "product").link(source_id, canonical_id)

    def test_variety_scoped_to_parent_product(self, ingested, repo, az_rows):
        ingested.ingest([{**az_rows[0], "variety_code": "31", "variety_name": "Qızıl əhmədi"}])
        repo.add_canonical(
            EntityKind.VARIETY,
            CanonicalVariety(id="var-santa-maria", product_id="prod-pear", slug="santa-maria", name_en="Santa Maria"),
        )
        ingested.link_entity("product", "AZ:product:12", "prod-apple")

        with pytest.raises(InvalidLink):
            IdentityStore(repo, "variety").link("AZ:variety:31", "var-santa-maria")
        assert repo.get_source_entity(EntityKind.VARIETY, "AZ:variety:31").canonical_id is None


class TestFindUnlinked:
    def test_filters(self, ingested, repo):
        markets = IdentityStore(repo, "market")
        assert [e.id for e in markets.find_unlinked()] == ["AZ:market:4"]
        assert markets.find_unlinked(country_code="de") == []
        assert [e.id for e in markets.find_unlinked(q="KEŞLƏ")] == ["AZ:market:4"]
        assert markets.find_unlinked(source="FPMA") == []

    def test_linked_entities_excluded(self, ingested, repo):
        ingested.link_entity("market", "AZ:market:4", "market-baku")
        assert IdentityStore(repo, "market").find_unlinked() == []


class TestCanonicalRecords:
    def test_create_duplicate_id(self, catalog, repo):
        with pytest.raises(InvalidLink):
            IdentityStore(repo, "product").create(
                CanonicalProduct(id="prod-apple", slug="apple-2", name_en="Apple")
            )

    def test_create_duplicate_market_name(self, catalog, repo):
        with pytest.raises(InvalidLink):
            IdentityStore(repo, "market").create(
                CanonicalMarket(country_id="country-az", name="BAKU KESHLA MARKET")
            )

    def test_same_market_name_in_other_country(self, catalog, repo):
        market = IdentityStore(repo, "market").create(
            CanonicalMarket(country_id="country-de", name="Baku Keshla market")
        )
        assert repo.get_canonical(EntityKind.MARKET, market.id) is not None

    def test_create_variety_needs_product(self, catalog, repo):
        with pytest.raises(NotFound):
            IdentityStore(repo, "variety").create(
                CanonicalVariety(product_id="prod-404", slug="x", name_en="X")
            )

    def test_delete_market_with_linked_source_market(self, ingested, repo):
        ingested.link_entity("market", "AZ:market:4", "market-baku")

        with pytest.raises(HasDependents) as exc_info:
            ingested.delete_canonical("market", "market-baku")
        assert exc_info.value.details["dependents"] == 1
        assert repo.get_canonical(EntityKind.MARKET, "market-baku") is not None

        ingested.unlink_entity("market", "AZ:market:4")
        ingested.delete_canonical("market", "market-baku")
        assert repo.get_canonical(EntityKind.MARKET, "market-baku") is None

    def test_delete_country_with_markets(self, catalog, repo):
        with pytest.raises(HasDependents):
            IdentityStore(repo, "country").delete("country-az")

    def test_delete_product_with_aggregates(self, ingested, repo):
        ingested.link_entity("product", "AZ:product:12", "prod-apple")
        ingested.recompute_aggregates_for_product("prod-apple")
        ingested.unlink_entity("product", "AZ:product:12")

        with pytest.raises(HasDependents):
            ingested.delete_canonical("product", "prod-apple")

    def test_delete_unknown(self, catalog, repo):
        with pytest.raises(NotFound):
            IdentityStore(repo, "product").delete("prod-404")


class TestConvertToVariety:
    def test_relinks_sources(self, ingested, repo, az_rows):
        ingested.ingest([{**row, "product_code": "13", "product_name": "Armud"} for row in az_rows])
        ingested.link_entity("product", "AZ:product:13", "prod-pear")

        variety = ingested.convert_product_to_variety("prod-pear", "prod-apple")

        assert variety.product_id == "prod-apple"
        assert variety.slug == "pear"
        assert repo.get_canonical(EntityKind.PRODUCT, "prod-pear") is None
        moved = repo.get_source_entity(EntityKind.PRODUCT, "AZ:product:13")
        assert moved.canonical_id == "prod-apple"
        assert moved.canonical_variety_id == variety.id
        weekly = repo.list_aggregates(product_id="prod-apple", period_type="WEEKLY")
        assert weekly[0].sample_count == 2

    def test_into_itself(self, catalog, repo):
        with pytest.raises(InvalidLink):
            IdentityStore(repo, "product").convert_to_variety("prod-apple", "prod-apple")

    def test_product_with_varieties(self, catalog, repo):
        repo.add_canonical(
            EntityKind.VARIETY,
            CanonicalVariety(id="var-1", product_id="prod-pear", slug="v", name_en="V"),
        )
        with pytest.raises(HasDependents):
            IdentityStore(repo, "product").convert_to_variety("prod-pear", "prod-apple")

    def test_only_for_products(self, catalog, repo):
        with pytest.raises(InvalidLink):
            IdentityStore(repo, "market").convert_to_variety("market-baku", "prod-apple")
