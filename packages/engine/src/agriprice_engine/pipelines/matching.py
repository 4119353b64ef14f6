"""
pipelines/matching.py — Batch entity matching for one entity kind.

Orchestrates:
  1. Load every source entity of the kind and the canonical candidates
  2. Skip manually linked entities
  3. Score each entity against its scoped candidates
       varieties — varieties of the canonical product linked to the parent
       markets   — markets in the source market's country, when known
  4. Link when the best score reaches the threshold, otherwise record the
     score and leave the entity unlinked
  5. Write only when the link or score changed

Per-entity failures are logged and counted; they never abort the batch.

Usage:
    from agriprice_engine.pipelines.matching import run_matching
    summary = run_matching(repo, "product")
    print(summary.matched, summary.unmatched)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import structlog

from agriprice_shared.config import settings
from agriprice_shared.constants import EntityKind
from agriprice_shared.models import (
    CanonicalCountry,
    CanonicalMarket,
    CanonicalRecord,
    CanonicalVariety,
    MatchCandidate,
    SourceEntity,
)
from agriprice_engine.identity import IdentityStore
from agriprice_engine.loaders.base import Repository
from agriprice_engine.transforms.matching import EntityMatcher

log = structlog.get_logger(__name__)


@dataclass
class MatchSummary:
    """Outcome counts of one matching run."""

    kind: str
    matched: int = 0
    unmatched: int = 0
    skipped_manual: int = 0
    written: int = 0
    errors: int = 0
    candidates: list[MatchCandidate] = field(default_factory=list)
    duration_ms: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "skipped_manual": self.skipped_manual,
            "written": self.written,
            "errors": self.errors,
            "duration_ms": self.duration_ms,
        }


class MatchingJob:
    """Matches the source entities of one kind against canonical records."""

    def __init__(
        self,
        repo: Repository,
        kind: EntityKind | str,
        *,
        threshold: float | None = None,
    ) -> None:
        self._repo = repo
        self.kind = EntityKind(kind)
        self.matcher = EntityMatcher(
            threshold=settings.match_threshold if threshold is None else threshold
        )
        self._store = IdentityStore(repo, self.kind)
        self._log = log.bind(kind=self.kind.value)
        self._candidates: list[CanonicalRecord] = repo.list_canonical(self.kind)
        self._country_ids: dict[str, str] = {
            c.iso2: c.id
            for c in repo.list_canonical(EntityKind.COUNTRY)
            if isinstance(c, CanonicalCountry)
        }

    # ------------------------------------------------------------------
    # Candidate scoping
    # ------------------------------------------------------------------

    def candidates_for(self, entity: SourceEntity) -> list[CanonicalRecord]:
        if self.kind is EntityKind.VARIETY:
            if not entity.parent_id:
                return self._candidates
            parent = self._repo.get_source_entity(EntityKind.PRODUCT, entity.parent_id)
            if parent is None or parent.canonical_id is None:
                # Variety matching waits for the parent product's link
                return []
            return [
                c
                for c in self._candidates
                if isinstance(c, CanonicalVariety) and c.product_id == parent.canonical_id
            ]

        if self.kind is EntityKind.MARKET and entity.country_code:
            country_id = self._country_ids.get(entity.country_code.upper())
            if country_id is not None:
                return [
                    c
                    for c in self._candidates
                    if isinstance(c, CanonicalMarket) and c.country_id == country_id
                ]

        return self._candidates

    def best_match(self, entity: SourceEntity) -> MatchCandidate | None:
        return self.matcher.best_match(entity, self.candidates_for(entity))

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def match_one(self, entity: SourceEntity, summary: MatchSummary) -> None:
        if entity.is_manual:
            summary.skipped_manual += 1
            return

        candidate = self.best_match(entity)
        if candidate is not None:
            summary.candidates.append(candidate)

        if candidate is not None and candidate.score >= self.matcher.threshold:
            target_id: str | None = candidate.canonical_candidate_id
            score = candidate.score
            summary.matched += 1
        else:
            target_id = None
            score = candidate.score if candidate is not None else 0.0
            summary.unmatched += 1

        if entity.canonical_id == target_id and entity.match_score == score:
            return

        # An operator may have linked the entity since the batch was loaded
        current = self._repo.get_source_entity(self.kind, entity.id)
        if current is None or current.is_manual:
            if target_id is not None:
                summary.matched -= 1
            else:
                summary.unmatched -= 1
            summary.skipped_manual += 1
            return

        self._store.link(entity.id, target_id, manual=False, score=score)
        summary.written += 1

    def run(self) -> MatchSummary:
        summary = MatchSummary(kind=self.kind.value)
        t0 = time.monotonic()
        entities = self._repo.list_source_entities(self.kind)
        self._log.info(
            "matching_start",
            entities=len(entities),
            candidates=len(self._candidates),
            threshold=self.matcher.threshold,
        )

        for entity in entities:
            try:
                self.match_one(entity, summary)
            except Exception as exc:
                summary.errors += 1
                self._log.error(
                    "entity_match_failed",
                    source_entity_id=entity.id,
                    error=str(exc),
                    exc_info=True,
                )

        summary.duration_ms = int((time.monotonic() - t0) * 1000)
        self._log.info("matching_complete", **summary.as_dict())
        return summary


def run_matching(
    repo: Repository,
    kind: EntityKind | str,
    *,
    threshold: float | None = None,
) -> MatchSummary:
    """Run one matching batch for a kind. See MatchingJob."""
    return MatchingJob(repo, kind, threshold=threshold).run()
