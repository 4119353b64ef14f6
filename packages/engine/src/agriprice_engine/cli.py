"""
cli.py — Click CLI entrypoint for the engine.

Usage:
    agriprice init-db
    agriprice seed
    agriprice ingest data/az-2024-01.ndjson
    agriprice match product
    agriprice link product AZ:product:12 <canonical-id>
    agriprice link product AZ:product:12            # clears the link
    agriprice unlinked market --source FPMA --country AF
    agriprice recompute [--product <canonical-id>]
    agriprice convert 150 EUR AZN "€/100kg" kg
    agriprice rates
    agriprice signals [--as-of 2024-06-30]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
import structlog
from pydantic import ValidationError

from agriprice_shared.config import settings
from agriprice_shared.constants import SOURCE_CODES, EntityKind
from agriprice_engine.errors import EngineError
from agriprice_engine.service import PriceEngine
from agriprice_engine.sources import parse_source_records
from agriprice_engine.utils.logging import configure_logging

log = structlog.get_logger(__name__)

KIND_CHOICE = click.Choice([k.value for k in EntityKind], case_sensitive=False)


def _engine() -> PriceEngine:
    return PriceEngine.from_settings()


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str, ensure_ascii=False))


def _read_ndjson(path: Path) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    with path.open(encoding="utf-8") as fh:
        for line_no, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise click.ClickException(f"{path}:{line_no}: invalid JSON ({exc.msg})") from exc
    return rows


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["json", "console"]),
    help="Log renderer",
)
def main(log_level: str, log_format: str) -> None:
    """agriprice normalization and aggregation engine."""
    configure_logging(log_level=log_level, log_format=log_format)


@main.command("init-db")
def init_db() -> None:
    """Create the DuckDB tables at DUCKDB_PATH."""
    _engine()
    click.echo(f"Schema ready: {settings.duckdb_path}")


@main.command()
def seed() -> None:
    """Create canonical price stages and store the default rate table."""
    _echo_json(_engine().seed())


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--skip-invalid", is_flag=True, help="Log and skip rows that fail validation.")
def ingest(file: Path, skip_invalid: bool) -> None:
    """Deposit source records from an NDJSON file."""
    rows = _read_ndjson(file)
    log.info("cli_ingest", file=str(file), rows=len(rows))
    try:
        records = parse_source_records(rows, skip_invalid=skip_invalid)
    except ValidationError as exc:
        raise click.ClickException(f"Invalid source record: {exc.errors()[0]['msg']}") from exc
    _echo_json(_engine().ingest(records).as_dict())


@main.command()
@click.argument("kind", type=KIND_CHOICE)
def match(kind: str) -> None:
    """Run entity matching for one entity kind."""
    _echo_json(_engine().run_matching(kind.lower()).as_dict())


@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.argument("source_id")
@click.argument("canonical_id", required=False)
def link(kind: str, source_id: str, canonical_id: str | None) -> None:
    """Manually link a source entity (omit CANONICAL_ID to unlink)."""
    try:
        entity = _engine().link_entity(kind.lower(), source_id, canonical_id)
    except EngineError as exc:
        raise click.ClickException(exc.message) from exc
    _echo_json(entity.model_dump(mode="json"))


@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.option("--source", type=click.Choice(SOURCE_CODES), default=None)
@click.option("--country", "country_code", default=None, help="ISO2 country code")
@click.option("-q", "--query", "q", default=None, help="Name substring")
def unlinked(kind: str, source: str | None, country_code: str | None, q: str | None) -> None:
    """List source entities without a canonical link."""
    entities = _engine().list_unlinked(
        kind.lower(), source=source, country_code=country_code, q=q
    )
    if not entities:
        click.echo("No unlinked entities.")
        return
    for entity in entities:
        score = f"{entity.match_score:.2f}" if entity.match_score is not None else "  - "
        click.echo(f"  {entity.source:5s} {entity.id:40s} {score}  {entity.name}")


@main.command()
@click.option("--product", "product_id", default=None, help="Recompute one canonical product")
def recompute(product_id: str | None) -> None:
    """Recompute price aggregates."""
    engine = _engine()
    if product_id:
        try:
            written = engine.recompute_aggregates_for_product(product_id)
        except EngineError as exc:
            raise click.ClickException(exc.message) from exc
        _echo_json({"product_id": product_id, "aggregates_written": written})
        return

    summary = engine.recompute_all_aggregates()
    _echo_json(summary.as_dict())
    if summary.failed_products:
        raise SystemExit(1)


@main.command()
@click.argument("value", type=float)
@click.argument("from_currency")
@click.argument("to_currency")
@click.argument("from_unit")
@click.argument("to_unit")
def convert(value: float, from_currency: str, to_currency: str, from_unit: str, to_unit: str) -> None:
    """Convert a price between currency/unit pairs."""
    result = _engine().convert(value, from_currency, to_currency, from_unit, to_unit)
    _echo_json(
        {
            "value": result.value,
            "converted": result.converted,
            "error": result.error.code if result.error else None,
        }
    )


@main.command()
def rates() -> None:
    """Print the current rate table."""
    _echo_json(_engine().rate_table())


@main.command()
@click.option(
    "--as-of",
    "as_of",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Reference date the signal windows count back from (default: today)",
)
def signals(as_of) -> None:
    """Recompute price-change signals."""
    summary = _engine().update_price_signals(as_of.date() if as_of else None)
    _echo_json(summary.as_dict())


if __name__ == "__main__":
    main()
