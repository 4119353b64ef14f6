"""
loaders/base.py — Repository interface shared by every storage backend.

The engine never reaches for a global database handle: every component
receives a Repository explicitly. Two implementations ship:

    loaders/duckdb_store.py  — DuckDBRepository (file or :memory:)
    loaders/memory_store.py  — InMemoryRepository (tests, scratch runs)

Writes that must land together run inside `transaction()`, which is
re-entrant: only the outermost block commits or rolls back.

Usage:
    with repo.transaction():
        repo.save_source_entity(entity)
        repo.replace_aggregates(product_id, records)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date

from agriprice_shared.constants import EntityKind
from agriprice_shared.models import (
    AggregateRecord,
    CanonicalRecord,
    PriceSignal,
    RateTable,
    RawObservation,
    SourceEntity,
)

ObservationKey = tuple[str, str, str | None, str, str, date]


def observation_key(obs: RawObservation) -> ObservationKey:
    """Identity of an observation; re-ingesting the same reading is a no-op."""
    return (
        obs.source,
        obs.source_product_id,
        obs.source_variety_id,
        obs.market_ref,
        obs.price_stage,
        obs.period_date,
    )


def observation_sort_key(obs: RawObservation) -> tuple[date, str, str, str, str, str]:
    return (
        obs.period_date,
        obs.source,
        obs.source_product_id,
        obs.source_variety_id or "",
        obs.market_ref,
        obs.price_stage,
    )


class Repository(ABC):
    """Storage contract for canonical records, source entities, observations and aggregates."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init_schema(self) -> None:
        """Create backing tables if the backend needs them."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Unit of work: everything inside commits together or not at all."""

    # ------------------------------------------------------------------
    # Canonical records
    # ------------------------------------------------------------------

    @abstractmethod
    def get_canonical(self, kind: EntityKind, canonical_id: str) -> CanonicalRecord | None: ...

    @abstractmethod
    def list_canonical(self, kind: EntityKind) -> list[CanonicalRecord]: ...

    @abstractmethod
    def add_canonical(self, kind: EntityKind, record: CanonicalRecord) -> CanonicalRecord: ...

    @abstractmethod
    def delete_canonical(self, kind: EntityKind, canonical_id: str) -> None: ...

    # ------------------------------------------------------------------
    # Source entities
    # ------------------------------------------------------------------

    @abstractmethod
    def get_source_entity(self, kind: EntityKind, source_id: str) -> SourceEntity | None: ...

    @abstractmethod
    def list_source_entities(
        self,
        kind: EntityKind,
        *,
        source: str | None = None,
        canonical_id: str | None = None,
        parent_id: str | None = None,
    ) -> list[SourceEntity]:
        """Source entities of one kind, ordered by (source, id)."""

    @abstractmethod
    def save_source_entity(self, entity: SourceEntity) -> SourceEntity:
        """Insert or overwrite a source entity by (kind, id)."""

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    @abstractmethod
    def add_observations(self, observations: Iterable[RawObservation]) -> int:
        """Append observations, skipping ones already stored. Returns rows inserted."""

    @abstractmethod
    def list_observations(
        self,
        *,
        product_ids: Iterable[str] = (),
        variety_ids: Iterable[str] = (),
        source: str | None = None,
    ) -> list[RawObservation]:
        """
        Observations of any of the given source products or source varieties,
        ordered by period_date (ties broken deterministically).
        """

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    @abstractmethod
    def list_aggregates(
        self,
        *,
        product_id: str | None = None,
        period_type: str | None = None,
        market_type: str | None = None,
        year_from: int | None = None,
        year_to: int | None = None,
    ) -> list[AggregateRecord]: ...

    def count_aggregates(self, product_id: str) -> int:
        return len(self.list_aggregates(product_id=product_id))

    @abstractmethod
    def replace_aggregates(self, product_id: str, records: list[AggregateRecord]) -> int:
        """Delete every aggregate of the product and insert records, atomically."""

    # ------------------------------------------------------------------
    # Rates
    # ------------------------------------------------------------------

    @abstractmethod
    def load_rate_table(self, *, base_currency: str = "USD", base_unit: str = "kg") -> RateTable | None:
        """Stored currency/unit rates, or None when none are stored."""

    @abstractmethod
    def save_rate_table(self, table: RateTable) -> None: ...

    # ------------------------------------------------------------------
    # Price signals
    # ------------------------------------------------------------------

    @abstractmethod
    def list_signals(
        self,
        *,
        source: str | None = None,
        product_id: str | None = None,
    ) -> list[PriceSignal]:
        """Stored signals ordered by series key."""

    @abstractmethod
    def replace_signals(self, signals: list[PriceSignal]) -> int:
        """Delete every stored signal and insert signals, atomically."""


def sorted_aggregates(records: Iterable[AggregateRecord]) -> list[AggregateRecord]:
    return sorted(
        records,
        key=lambda r: (
            r.canonical_product_id,
            r.market_type_code,
            r.period_type,
            r.year,
            r.period if r.period is not None else 0,
        ),
    )


def signal_sort_key(signal: PriceSignal) -> tuple[str, ...]:
    return tuple(part or "" for part in signal.key)


def sorted_signals(signals: Iterable[PriceSignal]) -> list[PriceSignal]:
    return sorted(signals, key=signal_sort_key)


def check_unique_keys(records: list[AggregateRecord] | list[PriceSignal]) -> None:
    seen: set[tuple] = set()
    for record in records:
        if record.key in seen:
            raise ValueError(f"Duplicate key: {record.key}")
        seen.add(record.key)
