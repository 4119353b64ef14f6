"""
agriprice_engine.sources — per-source record shapes.

Each source deposits records in its own shape:
  AZSourceRecord    — national ministry feed, market-level daily prices
  EUSourceRecord    — Eurostat, country-level monthly / annual prices
  FAOSourceRecord   — FAOSTAT, country-level annual producer prices
  FPMASourceRecord  — FAO GIEWS FPMA, market-level retail / wholesale series

SourceRecord is the tagged union of the four (discriminator: "source").
extract_observations() is the single point where source shapes become
RawObservations; every downstream component reads only RawObservations.

Usage:
    from agriprice_engine.sources import parse_source_records, extract_observations

    records = parse_source_records(json_rows)
    observations = extract_observations(records)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Annotated, Any, Union

import structlog
from pydantic import Field, TypeAdapter, ValidationError

from agriprice_shared.models import RawObservation, SourceEntity
from agriprice_engine.sources.az import AZSourceRecord
from agriprice_engine.sources.base import BaseSourceRecord, price_stage_id, source_entity_id
from agriprice_engine.sources.eu import EUSourceRecord
from agriprice_engine.sources.fao import FAOSourceRecord
from agriprice_engine.sources.fpma import FPMASourceRecord

log = structlog.get_logger(__name__)

SourceRecord = Annotated[
    Union[AZSourceRecord, EUSourceRecord, FAOSourceRecord, FPMASourceRecord],
    Field(discriminator="source"),
]

_RECORD_ADAPTER: TypeAdapter[Any] = TypeAdapter(SourceRecord)


def parse_source_records(
    rows: Iterable[dict[str, Any]],
    *,
    skip_invalid: bool = False,
) -> list[BaseSourceRecord]:
    """
    Validate JSON-shaped rows into source records.

    Args:
        rows:         Dicts carrying a "source" key ("AZ" | "EU" | "FAO" | "FPMA").
        skip_invalid: Log and drop rows that fail validation instead of raising.

    Returns:
        Source records in input order.

    Raises:
        pydantic.ValidationError: On the first invalid row, unless skip_invalid.
    """
    records: list[BaseSourceRecord] = []
    for index, row in enumerate(rows):
        try:
            records.append(_RECORD_ADAPTER.validate_python(row))
        except ValidationError as exc:
            if not skip_invalid:
                raise
            log.warning(
                "source_record_invalid",
                row=index,
                source=row.get("source") if isinstance(row, dict) else None,
                errors=exc.error_count(),
            )
    return records


def extract_observations(records: Iterable[BaseSourceRecord]) -> list[RawObservation]:
    return [record.to_observation() for record in records]


def extract_source_entities(records: Iterable[BaseSourceRecord]) -> list[SourceEntity]:
    """Distinct source entities referenced by records, first occurrence wins."""
    seen: dict[tuple[str, str], SourceEntity] = {}
    for record in records:
        for entity in record.source_entities():
            seen.setdefault((entity.kind.value, entity.id), entity)
    return list(seen.values())


__all__ = [
    "AZSourceRecord",
    "BaseSourceRecord",
    "EUSourceRecord",
    "FAOSourceRecord",
    "FPMASourceRecord",
    "SourceRecord",
    "extract_observations",
    "extract_source_entities",
    "parse_source_records",
    "price_stage_id",
    "source_entity_id",
]
