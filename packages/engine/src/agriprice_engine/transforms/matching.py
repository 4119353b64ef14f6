"""
transforms/matching.py — Name normalization and similarity for entity matching.

Product, variety, market and country names arrive in Azerbaijani, English
and Russian transliterations, with punctuation, unit words and qualifiers
("fresh", "average price") mixed in. This module normalizes them, expands
Azerbaijani product names through a bilingual dictionary, and scores
source entities against canonical records so that "Alma (təzə)" and
"Apples" resolve to the same canonical product.

Usage:
    from agriprice_engine.transforms.matching import EntityMatcher, normalize_name

    normalize_name("Pomidor, təzə")        # "pomidor"
    similarity("apples", "apple")           # 0.909...

    matcher = EntityMatcher(threshold=0.8)
    candidate = matcher.best_match(source_entity, canonical_products)
    if candidate and candidate.score >= matcher.threshold:
        ...
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable
from difflib import SequenceMatcher

import structlog

from agriprice_shared.models import (
    CanonicalCountry,
    CanonicalPriceStage,
    CanonicalRecord,
    MatchCandidate,
    SourceEntity,
)

log = structlog.get_logger(__name__)

# Letters NFKD does not decompose to ASCII
_AZ_FOLD = str.maketrans({"ə": "e", "Ə": "E", "ı": "i", "İ": "I"})

_PUNCT = re.compile(r"[^\w\s]")
_SPACE = re.compile(r"\s+")

STOP_TOKENS: frozenset[str] = frozenset(
    {
        # qualifiers
        "fresh", "average", "avg", "price", "prices", "national", "local",
        "imported", "other",
        # unit words
        "kg", "100kg", "ton", "tonne", "tonnes", "lb", "per", "unit",
        # az
        "teze", "qiymet", "orta", "yerli", "idxal",
    }
)

# Common AZ -> EN product name mappings
PRODUCT_DICTIONARY: dict[str, list[str]] = {
    # Fruits
    "alma": ["apple", "apples", "dessert apple", "dessert apples"],
    "armud": ["pear", "pears", "dessert pear", "dessert pears"],
    "şaftalı": ["peach", "peaches"],
    "nektarin": ["nectarine", "nectarines"],
    "ərik": ["apricot", "apricots"],
    "gilas": ["cherry", "cherries", "sweet cherry", "sweet cherries"],
    "albalı": ["sour cherry", "sour cherries"],
    "gavalı": ["plum", "plums"],
    "üzüm": ["grape", "grapes", "table grape", "table grapes"],
    "çiyələk": ["strawberry", "strawberries"],
    "moruq": ["raspberry", "raspberries"],
    "portağal": ["orange", "oranges"],
    "mandarin": ["mandarin", "mandarins", "clementine", "clementines"],
    "limon": ["lemon", "lemons"],
    "banan": ["banana", "bananas"],
    "qarpız": ["watermelon", "water melon", "water melons"],
    "yemiş": ["melon", "melons"],
    "kivi": ["kiwi", "kiwis", "kiwifruit"],
    "əncir": ["fig", "figs"],
    "qoz": ["walnut", "walnuts"],
    "fındıq": ["hazelnut", "hazelnuts"],
    "badam": ["almond", "almonds"],
    # Vegetables
    "pomidor": ["tomato", "tomatoes"],
    "xiyar": ["cucumber", "cucumbers"],
    "bibər": ["pepper", "peppers", "capsicum"],
    "badımcan": ["eggplant", "egg plant", "aubergine"],
    "kələm": ["cabbage", "white cabbage", "red cabbage"],
    "gül kələm": ["cauliflower", "cauliflowers"],
    "ispanaq": ["spinach"],
    "yerkökü": ["carrot", "carrots"],
    "soğan": ["onion", "onions"],
    "sarımsaq": ["garlic"],
    "kartof": ["potato", "potatoes", "ware potato"],
    "lobya": ["bean", "beans", "green bean", "green beans"],
    "noxud": ["pea", "peas", "chickpea"],
    "göbələk": ["mushroom", "mushrooms"],
    "çuğundur": ["beetroot", "beet"],
    # Cereals
    "buğda": ["wheat", "soft wheat", "durum wheat"],
    "arpa": ["barley"],
    "yulaf": ["oat", "oats"],
    "qarğıdalı": ["maize", "corn"],
    "düyü": ["rice"],
    "çovdar": ["rye"],
}


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def fold(text: str) -> str:
    """Unicode decompose + ASCII fold, with Azerbaijani letters mapped first."""
    text = text.translate(_AZ_FOLD)
    text = unicodedata.normalize("NFKD", text)
    return text.encode("ascii", "ignore").decode("ascii")


def normalize_name(name: str | None) -> str:
    """
    Normalize an entity name for matching.

    Steps:
    1. Azerbaijani letter fold + Unicode decompose + ASCII fold
    2. Lowercase
    3. Remove punctuation
    4. Collapse whitespace
    5. Drop stop tokens (unless nothing else is left)

    Returns empty string for None/empty input.
    """
    if not name:
        return ""

    name = fold(name).lower()
    name = _PUNCT.sub(" ", name)
    name = _SPACE.sub(" ", name).strip()

    tokens = [t for t in name.split(" ") if t not in STOP_TOKENS]
    return " ".join(tokens) if tokens else name


# Dictionary keyed by normalized names, both directions
_AZ_TO_EN: dict[str, list[str]] = {
    normalize_name(az): [normalize_name(en) for en in ens]
    for az, ens in PRODUCT_DICTIONARY.items()
}
_EN_TO_AZ: dict[str, str] = {
    en: az for az, ens in _AZ_TO_EN.items() for en in ens
}


def _contains_phrase(haystack: str, phrase: str) -> bool:
    return f" {phrase} " in f" {haystack} "


def expand_names(names: Iterable[str]) -> list[str]:
    """
    Normalize names and add their dictionary translations.

    "Alma" -> ["alma", "apple", "apples", "dessert apple", "dessert apples"]
    "Apples" -> ["apples", "alma"]
    """
    expanded: list[str] = []
    for raw in names:
        name = normalize_name(raw)
        if not name:
            continue
        expanded.append(name)
        for az, ens in _AZ_TO_EN.items():
            if _contains_phrase(name, az):
                expanded.extend(ens)
        for en, az in _EN_TO_AZ.items():
            if _contains_phrase(name, en):
                expanded.append(az)
    return list(dict.fromkeys(expanded))


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def _ratio(a: str, b: str) -> float:
    return SequenceMatcher(None, a, b).ratio()


def token_overlap(a: str, b: str, *, token_threshold: float = 0.8) -> float:
    """
    Share of tokens with a fuzzy counterpart on the other side.

    Tokens of two characters or fewer are ignored; two tokens count as equal
    when their edit ratio reaches token_threshold.
    """
    tokens_a = [t for t in a.split() if len(t) > 2]
    tokens_b = [t for t in b.split() if len(t) > 2]
    if not tokens_a or not tokens_b:
        return 0.0

    matches = sum(
        1
        for ta in tokens_a
        if any(ta == tb or _ratio(ta, tb) >= token_threshold for tb in tokens_b)
    )
    return matches / max(len(tokens_a), len(tokens_b))


def similarity(a: str, b: str) -> float:
    """Similarity of two normalized names in [0, 1]."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return max(_ratio(a, b), token_overlap(a, b))


def name_score(source_names: Iterable[str], candidate_names: Iterable[str]) -> float:
    """Best similarity between any expanded source name and any candidate name."""
    sources = expand_names(source_names)
    candidates = [n for n in (normalize_name(c) for c in candidate_names) if n]
    best = 0.0
    for s in sources:
        for c in candidates:
            score = similarity(s, c)
            if score > best:
                best = score
                if best == 1.0:
                    return best
    return best


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------


class EntityMatcher:
    """
    Scores source entities against canonical records of the same kind.

    Exact code matches win outright: a source country whose ISO2 code equals
    a canonical country's, or a source price stage whose registry code
    equals a canonical stage's, scores 1.0. Everything else is scored on
    names.
    """

    def __init__(self, threshold: float = 0.8) -> None:
        self.threshold = threshold

    def score(self, entity: SourceEntity, candidate: CanonicalRecord) -> float:
        if isinstance(candidate, CanonicalCountry) and entity.country_code:
            if entity.country_code.upper() == candidate.iso2:
                return 1.0
        if isinstance(candidate, CanonicalPriceStage) and entity.market_type:
            if entity.market_type == candidate.code:
                return 1.0
        return round(name_score(entity.display_names(), candidate.display_names()), 4)

    def best_match(
        self,
        entity: SourceEntity,
        candidates: Iterable[CanonicalRecord],
    ) -> MatchCandidate | None:
        """
        Highest-scoring candidate, or None when nothing scores above zero.

        Ties go to the candidate with the smallest id so results are stable
        between runs. The threshold is not applied here.
        """
        best_id: str | None = None
        best_score = 0.0
        for candidate in sorted(candidates, key=lambda c: c.id):
            score = self.score(entity, candidate)
            if score > best_score:
                best_id, best_score = candidate.id, score

        if best_id is None:
            return None
        log.debug(
            "best_match",
            kind=entity.kind.value,
            source_entity_id=entity.id,
            canonical_candidate_id=best_id,
            score=best_score,
        )
        return MatchCandidate(
            source_entity_id=entity.id,
            canonical_candidate_id=best_id,
            score=best_score,
        )
