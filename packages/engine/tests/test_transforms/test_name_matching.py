"""
tests/test_transforms/test_name_matching.py — Tests for name normalization and scoring.
"""

from __future__ import annotations

import pytest

from agriprice_shared.constants import EntityKind
from agriprice_shared.models import (
    CanonicalCountry,
    CanonicalPriceStage,
    CanonicalProduct,
    SourceEntity,
)
from agriprice_engine.transforms.matching import (
    EntityMatcher,
    expand_names,
    fold,
    name_score,
    normalize_name,
    similarity,
    token_overlap,
)


def _source(kind: EntityKind = EntityKind.PRODUCT, **fields) -> SourceEntity:
    data = {"id": "AZ:product:1", "kind": kind, "source": "AZ", "name": "Alma"}
    data.update(fields)
    return SourceEntity(**data)


class TestNormalizeName:
    def test_azerbaijani_letters_fold(self):
        assert fold("Şəki") == "Seki"
        assert fold("Qarpız") == "Qarpiz"

    def test_punctuation_and_qualifiers_removed(self):
        assert normalize_name("Pomidor, təzə") == "pomidor"
        assert normalize_name("Apples (fresh), average price") == "apples"

    def test_only_stop_tokens_kept(self):
        assert normalize_name("Fresh") == "fresh"

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value):
        assert normalize_name(value) == ""


class TestExpandNames:
    def test_az_to_en(self):
        names = expand_names(["Alma"])
        assert names[0] == "alma"
        assert "apple" in names and "apples" in names

    def test_en_to_az(self):
        assert "alma" in expand_names(["Apples"])

    def test_phrase_entries(self):
        assert "cauliflower" in expand_names(["Gül kələm"])


class TestSimilarity:
    def test_identical(self):
        assert similarity("apple", "apple") == 1.0

    def test_empty(self):
        assert similarity("", "apple") == 0.0

    def test_plural_is_close(self):
        assert similarity("apples", "apple") > 0.9

    def test_token_overlap_ignores_short_tokens(self):
        assert token_overlap("red apples", "apple of red") == 1.0
        assert token_overlap("of a", "of a") == 0.0

    def test_name_score_uses_dictionary(self):
        assert name_score(["Alma"], ["Apple"]) == 1.0


class TestEntityMatcher:
    def test_country_iso2_exact(self):
        matcher = EntityMatcher()
        entity = _source(EntityKind.COUNTRY, id="EU:country:DE", source="EU", name="Deutschland", country_code="de")
        country = CanonicalCountry(id="c-de", iso2="DE", name_en="Germany")
        assert matcher.score(entity, country) == 1.0

    def test_price_stage_code_exact(self):
        matcher = EntityMatcher()
        entity = _source(EntityKind.PRICE_STAGE, id="AZ:price_stage:TOPDAN", name="TOPDAN", market_type="WHOLESALE")
        stage = CanonicalPriceStage(id="WHOLESALE", code="WHOLESALE", name_en="Wholesale")
        assert matcher.score(entity, stage) == 1.0

    def test_best_match_picks_translation(self):
        matcher = EntityMatcher(threshold=0.8)
        apple = CanonicalProduct(id="p-apple", slug="apple", name_en="Apple")
        pear = CanonicalProduct(id="p-pear", slug="pear", name_en="Pear")
        candidate = matcher.best_match(_source(), [pear, apple])
        assert candidate is not None
        assert candidate.canonical_candidate_id == "p-apple"
        assert candidate.score == 1.0

    def test_ties_go_to_smallest_id(self):
        matcher = EntityMatcher()
        a = CanonicalProduct(id="b-apple", slug="apple-1", name_en="Apple")
        b = CanonicalProduct(id="a-apple", slug="apple-2", name_en="Apple")
        candidate = matcher.best_match(_source(), [a, b])
        assert candidate.canonical_candidate_id == "a-apple"

    def test_no_candidates(self):
        assert EntityMatcher().best_match(_source(), []) is None

    def test_threshold_not_applied(self):
        matcher = EntityMatcher(threshold=0.99)
        walnut = CanonicalProduct(id="p-walnut", slug="walnut", name_en="Walnut")
        candidate = matcher.best_match(_source(name="Armud"), [walnut])
        assert candidate is not None
        assert candidate.score < matcher.threshold
