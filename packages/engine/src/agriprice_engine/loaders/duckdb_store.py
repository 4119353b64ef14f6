"""
loaders/duckdb_store.py — DuckDB-backed Repository.

One table per canonical kind, one table of source entities (keyed by kind
and id), raw observations, price aggregates, price signals and the two
rate tables.
Aliases are stored as VARCHAR[] lists.

The connection is passed in explicitly; process edges obtain it from
agriprice_shared.db.get_duckdb_connection(), tests use
open_duckdb(":memory:").

Usage:
    from agriprice_shared.db import open_duckdb
    from agriprice_engine.loaders.duckdb_store import DuckDBRepository

    repo = DuckDBRepository(open_duckdb("./data/agriprice.duckdb"))
    repo.init_schema()
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

import duckdb
import structlog

from agriprice_shared.constants import EntityKind
from agriprice_shared.models import (
    CANONICAL_MODELS,
    AggregateRecord,
    CanonicalRecord,
    CurrencyRate,
    PriceSignal,
    RateTable,
    RawObservation,
    SourceEntity,
    UnitRate,
)
from agriprice_engine.loaders.base import (
    Repository,
    check_unique_keys,
    observation_key,
    observation_sort_key,
    sorted_signals,
)

log = structlog.get_logger(__name__)

CANONICAL_TABLES: dict[EntityKind, str] = {
    EntityKind.PRODUCT: "canonical_products",
    EntityKind.VARIETY: "canonical_varieties",
    EntityKind.MARKET: "canonical_markets",
    EntityKind.COUNTRY: "canonical_countries",
    EntityKind.PRICE_STAGE: "canonical_price_stages",
}

SCHEMA: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS canonical_products (
        id            VARCHAR PRIMARY KEY,
        slug          VARCHAR NOT NULL UNIQUE,
        name_en       VARCHAR NOT NULL,
        name_az       VARCHAR,
        name_ru       VARCHAR,
        category      VARCHAR,
        default_unit  VARCHAR NOT NULL DEFAULT 'kg',
        aliases       VARCHAR[]
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS canonical_varieties (
        id          VARCHAR PRIMARY KEY,
        product_id  VARCHAR NOT NULL,
        slug        VARCHAR NOT NULL,
        name_en     VARCHAR NOT NULL,
        name_az     VARCHAR,
        name_ru     VARCHAR,
        aliases     VARCHAR[]
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS canonical_countries (
        id       VARCHAR PRIMARY KEY,
        iso2     VARCHAR NOT NULL UNIQUE,
        name_en  VARCHAR NOT NULL,
        name_az  VARCHAR,
        name_ru  VARCHAR,
        aliases  VARCHAR[]
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS canonical_markets (
        id               VARCHAR PRIMARY KEY,
        country_id       VARCHAR NOT NULL,
        name             VARCHAR NOT NULL,
        name_en          VARCHAR,
        market_type      VARCHAR,
        is_national_avg  BOOLEAN NOT NULL DEFAULT FALSE,
        aliases          VARCHAR[],
        UNIQUE (country_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS canonical_price_stages (
        id           VARCHAR PRIMARY KEY,
        code         VARCHAR NOT NULL UNIQUE,
        name_en      VARCHAR NOT NULL,
        name_az      VARCHAR,
        name_ru      VARCHAR,
        description  VARCHAR,
        sort_order   INTEGER NOT NULL DEFAULT 0,
        aliases      VARCHAR[]
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS source_entities (
        kind                  VARCHAR NOT NULL,
        id                    VARCHAR NOT NULL,
        source                VARCHAR NOT NULL,
        code                  VARCHAR,
        name                  VARCHAR NOT NULL,
        name_en               VARCHAR,
        aliases               VARCHAR[],
        parent_id             VARCHAR,
        country_code          VARCHAR,
        market_type           VARCHAR,
        canonical_id          VARCHAR,
        canonical_variety_id  VARCHAR,
        match_score           DOUBLE,
        is_manual             BOOLEAN NOT NULL DEFAULT FALSE,
        PRIMARY KEY (kind, id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS raw_observations (
        source             VARCHAR NOT NULL,
        source_product_id  VARCHAR NOT NULL,
        source_variety_id  VARCHAR,
        market_ref         VARCHAR NOT NULL,
        price_stage        VARCHAR NOT NULL,
        period_date        DATE NOT NULL,
        value_low          DOUBLE NOT NULL,
        value_avg          DOUBLE NOT NULL,
        value_high         DOUBLE NOT NULL,
        currency           VARCHAR NOT NULL,
        unit               VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS price_aggregates (
        canonical_product_id  VARCHAR NOT NULL,
        market_type_code      VARCHAR NOT NULL,
        period_type           VARCHAR NOT NULL,
        period                INTEGER,
        year                  INTEGER NOT NULL,
        avg_price             DOUBLE NOT NULL,
        min_price             DOUBLE NOT NULL,
        max_price             DOUBLE NOT NULL,
        sample_count          INTEGER NOT NULL,
        start_date            DATE NOT NULL,
        end_date              DATE NOT NULL,
        currency              VARCHAR NOT NULL,
        unit                  VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS currencies (
        code          VARCHAR PRIMARY KEY,
        rate_to_base  DOUBLE NOT NULL,
        symbol        VARCHAR,
        name_en       VARCHAR,
        name_az       VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS units (
        code             VARCHAR PRIMARY KEY,
        conversion_rate  DOUBLE NOT NULL,
        base_unit        VARCHAR NOT NULL,
        category         VARCHAR,
        symbol           VARCHAR,
        name_en          VARCHAR,
        name_az          VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS price_signals (
        canonical_product_id   VARCHAR NOT NULL,
        canonical_variety_id   VARCHAR,
        canonical_country_id   VARCHAR NOT NULL,
        canonical_market_id    VARCHAR NOT NULL,
        market_type_code       VARCHAR,
        source                 VARCHAR NOT NULL,
        as_of                  DATE NOT NULL,
        currency               VARCHAR NOT NULL,
        unit                   VARCHAR NOT NULL,
        current_price          DOUBLE NOT NULL,
        current_price_date     DATE NOT NULL,
        previous_price         DOUBLE,
        month_ago_price        DOUBLE,
        three_month_ago_price  DOUBLE,
        six_month_ago_price    DOUBLE,
        year_ago_price         DOUBLE,
        month_change           DOUBLE,
        three_month_change     DOUBLE,
        six_month_change       DOUBLE,
        year_change            DOUBLE,
        month_status           VARCHAR NOT NULL,
        three_month_status     VARCHAR NOT NULL,
        six_month_status       VARCHAR NOT NULL,
        year_status            VARCHAR NOT NULL
    )
    """,
]

_OBSERVATION_COLUMNS = list(RawObservation.model_fields)
_AGGREGATE_COLUMNS = list(AggregateRecord.model_fields)
_SOURCE_ENTITY_COLUMNS = list(SourceEntity.model_fields)
_SIGNAL_COLUMNS = list(PriceSignal.model_fields)


def _fetch_dicts(cursor: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
    columns = [d[0] for d in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _insert_sql(table: str, columns: list[str], *, replace: bool = False) -> str:
    verb = "INSERT OR REPLACE" if replace else "INSERT"
    placeholders = ", ".join("?" for _ in columns)
    return f"{verb} INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


class DuckDBRepository(Repository):
    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn
        self._depth = 0

    def init_schema(self) -> None:
        for ddl in SCHEMA:
            self._conn.execute(ddl)
        log.info("duckdb_schema_ready", tables=len(SCHEMA))

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._conn.execute("BEGIN TRANSACTION")
        self._depth = 1
        try:
            yield
        except BaseException:
            self._conn.execute("ROLLBACK")
            log.debug("duckdb_transaction_rolled_back")
            raise
        else:
            self._conn.execute("COMMIT")
        finally:
            self._depth = 0

    # ------------------------------------------------------------------
    # Canonical records
    # ------------------------------------------------------------------

    def get_canonical(self, kind: EntityKind, canonical_id: str) -> CanonicalRecord | None:
        rows = _fetch_dicts(
            self._conn.execute(
                f"SELECT * FROM {CANONICAL_TABLES[kind]} WHERE id = ?", [canonical_id]
            )
        )
        return CANONICAL_MODELS[kind].from_db_row(rows[0]) if rows else None

    def list_canonical(self, kind: EntityKind) -> list[CanonicalRecord]:
        rows = _fetch_dicts(
            self._conn.execute(f"SELECT * FROM {CANONICAL_TABLES[kind]} ORDER BY id")
        )
        model = CANONICAL_MODELS[kind]
        return [model.from_db_row(row) for row in rows]

    def add_canonical(self, kind: EntityKind, record: CanonicalRecord) -> CanonicalRecord:
        data = record.to_insert_dict()
        columns = list(data)
        self._conn.execute(
            _insert_sql(CANONICAL_TABLES[kind], columns), [data[c] for c in columns]
        )
        return record

    def delete_canonical(self, kind: EntityKind, canonical_id: str) -> None:
        self._conn.execute(
            f"DELETE FROM {CANONICAL_TABLES[kind]} WHERE id = ?", [canonical_id]
        )

    # ------------------------------------------------------------------
    # Source entities
    # ------------------------------------------------------------------

    def get_source_entity(self, kind: EntityKind, source_id: str) -> SourceEntity | None:
        rows = _fetch_dicts(
            self._conn.execute(
                "SELECT * FROM source_entities WHERE kind = ? AND id = ?",
                [kind.value, source_id],
            )
        )
        return SourceEntity.from_db_row(rows[0]) if rows else None

    def list_source_entities(
        self,
        kind: EntityKind,
        *,
        source: str | None = None,
        canonical_id: str | None = None,
        parent_id: str | None = None,
    ) -> list[SourceEntity]:
        clauses = ["kind = ?"]
        params: list[Any] = [kind.value]
        for column, value in (
            ("source", source),
            ("canonical_id", canonical_id),
            ("parent_id", parent_id),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        rows = _fetch_dicts(
            self._conn.execute(
                f"SELECT * FROM source_entities WHERE {' AND '.join(clauses)} "
                "ORDER BY source, id",
                params,
            )
        )
        return [SourceEntity.from_db_row(row) for row in rows]

    def save_source_entity(self, entity: SourceEntity) -> SourceEntity:
        data = entity.to_insert_dict()
        self._conn.execute(
            _insert_sql("source_entities", _SOURCE_ENTITY_COLUMNS, replace=True),
            [data[c] for c in _SOURCE_ENTITY_COLUMNS],
        )
        return entity

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def add_observations(self, observations: Iterable[RawObservation]) -> int:
        existing = {
            observation_key(RawObservation.from_db_row(row))
            for row in _fetch_dicts(self._conn.execute("SELECT * FROM raw_observations"))
        }
        fresh: list[list[Any]] = []
        for obs in observations:
            key = observation_key(obs)
            if key in existing:
                continue
            existing.add(key)
            data = obs.to_insert_dict()
            fresh.append([data[c] for c in _OBSERVATION_COLUMNS])

        if fresh:
            with self.transaction():
                self._conn.executemany(
                    _insert_sql("raw_observations", _OBSERVATION_COLUMNS), fresh
                )
        log.debug("observations_inserted", inserted=len(fresh))
        return len(fresh)

    def list_observations(
        self,
        *,
        product_ids: Iterable[str] = (),
        variety_ids: Iterable[str] = (),
        source: str | None = None,
    ) -> list[RawObservation]:
        products = sorted(set(product_ids))
        varieties = sorted(set(variety_ids))
        if not products and not varieties:
            return []

        matches: list[str] = []
        params: list[Any] = []
        for column, ids in (("source_product_id", products), ("source_variety_id", varieties)):
            if ids:
                matches.append(f"{column} IN ({', '.join('?' for _ in ids)})")
                params.extend(ids)
        sql = f"SELECT * FROM raw_observations WHERE ({' OR '.join(matches)})"
        if source is not None:
            sql += " AND source = ?"
            params.append(source)
        rows = _fetch_dicts(self._conn.execute(sql, params))
        return sorted(
            (RawObservation.from_db_row(row) for row in rows), key=observation_sort_key
        )

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def list_aggregates(
        self,
        *,
        product_id: str | None = None,
        period_type: str | None = None,
        market_type: str | None = None,
        year_from: int | None = None,
        year_to: int | None = None,
    ) -> list[AggregateRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        for clause, value in (
            ("canonical_product_id = ?", product_id),
            ("period_type = ?", period_type),
            ("market_type_code = ?", market_type),
            ("year >= ?", year_from),
            ("year <= ?", year_to),
        ):
            if value is not None:
                clauses.append(clause)
                params.append(value)
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        rows = _fetch_dicts(
            self._conn.execute(
                f"SELECT * FROM price_aggregates {where}"
                "ORDER BY canonical_product_id, market_type_code, period_type, year, "
                "COALESCE(period, 0)",
                params,
            )
        )
        return [AggregateRecord.from_db_row(row) for row in rows]

    def count_aggregates(self, product_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM price_aggregates WHERE canonical_product_id = ?",
            [product_id],
        ).fetchone()
        return int(row[0]) if row else 0

    def replace_aggregates(self, product_id: str, records: list[AggregateRecord]) -> int:
        with self.transaction():
            self._conn.execute(
                "DELETE FROM price_aggregates WHERE canonical_product_id = ?", [product_id]
            )
            check_unique_keys(records)
            rows: list[list[Any]] = []
            for record in records:
                if record.canonical_product_id != product_id:
                    raise ValueError(
                        f"Aggregate for {record.canonical_product_id} written under {product_id}"
                    )
                data = record.to_insert_dict()
                rows.append([data[c] for c in _AGGREGATE_COLUMNS])
            if rows:
                self._conn.executemany(
                    _insert_sql("price_aggregates", _AGGREGATE_COLUMNS), rows
                )
        return len(records)

    # ------------------------------------------------------------------
    # Rates
    # ------------------------------------------------------------------

    def load_rate_table(self, *, base_currency: str = "USD", base_unit: str = "kg") -> RateTable | None:
        currencies = [
            CurrencyRate.from_db_row(row)
            for row in _fetch_dicts(self._conn.execute("SELECT * FROM currencies ORDER BY code"))
        ]
        units = [
            UnitRate.from_db_row(row)
            for row in _fetch_dicts(self._conn.execute("SELECT * FROM units ORDER BY code"))
        ]
        if not currencies and not units:
            return None
        return RateTable.from_rows(
            currencies, units, base_currency=base_currency, base_unit=base_unit
        )

    def save_rate_table(self, table: RateTable) -> None:
        currency_columns = list(CurrencyRate.model_fields)
        unit_columns = list(UnitRate.model_fields)
        with self.transaction():
            for rate in table.currencies.values():
                data = rate.to_insert_dict()
                self._conn.execute(
                    _insert_sql("currencies", currency_columns, replace=True),
                    [data[c] for c in currency_columns],
                )
            for unit in table.units.values():
                data = unit.to_insert_dict()
                self._conn.execute(
                    _insert_sql("units", unit_columns, replace=True),
                    [data[c] for c in unit_columns],
                )

    # ------------------------------------------------------------------
    # Price signals
    # ------------------------------------------------------------------

    def list_signals(
        self,
        *,
        source: str | None = None,
        product_id: str | None = None,
    ) -> list[PriceSignal]:
        clauses: list[str] = []
        params: list[Any] = []
        for clause, value in (("source = ?", source), ("canonical_product_id = ?", product_id)):
            if value is not None:
                clauses.append(clause)
                params.append(value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = _fetch_dicts(self._conn.execute(f"SELECT * FROM price_signals {where}", params))
        return sorted_signals(PriceSignal.from_db_row(row) for row in rows)

    def replace_signals(self, signals: list[PriceSignal]) -> int:
        with self.transaction():
            self._conn.execute("DELETE FROM price_signals")
            check_unique_keys(signals)
            rows: list[list[Any]] = []
            for signal in signals:
                data = signal.to_insert_dict()
                rows.append([data[c] for c in _SIGNAL_COLUMNS])
            if rows:
                self._conn.executemany(_insert_sql("price_signals", _SIGNAL_COLUMNS), rows)
        log.debug("signals_replaced", signals=len(signals))
        return len(signals)
