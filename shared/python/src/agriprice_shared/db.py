"""
db.py — DuckDB connection factory.

The engine itself never reaches for a global handle: repositories take a
connection explicitly. This module is only used at process edges (CLI,
API startup) to open the configured database file once.

Usage:
    from agriprice_shared.db import get_duckdb_connection, open_duckdb

    duck = get_duckdb_connection()          # process-wide, settings.duckdb_path
    scratch = open_duckdb(":memory:")       # private connection (tests, tools)
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

import duckdb
import structlog

from agriprice_shared.config import settings

logger = structlog.get_logger(__name__)


def open_duckdb(path: str) -> duckdb.DuckDBPyConnection:
    """
    Open a new DuckDB connection.

    Creates parent directories for file-backed databases.

    Args:
        path: File path or ":memory:".

    Returns:
        duckdb.DuckDBPyConnection
    """
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = duckdb.connect(path)
    logger.info("duckdb_connected", path=path)
    return conn


# ---------------------------------------------------------------------------
# Process-wide DuckDB connection
# ---------------------------------------------------------------------------
_duckdb_lock = threading.Lock()
_duckdb_conn: Optional[duckdb.DuckDBPyConnection] = None


def get_duckdb_connection() -> duckdb.DuckDBPyConnection:
    """
    Return the process-wide DuckDB connection to settings.duckdb_path.

    Returns:
        duckdb.DuckDBPyConnection
    """
    global _duckdb_conn

    with _duckdb_lock:
        if _duckdb_conn is None:
            _duckdb_conn = open_duckdb(settings.duckdb_path)
        return _duckdb_conn


def reset_duckdb_connection() -> None:
    """Close and forget the process-wide connection (useful in tests)."""
    global _duckdb_conn
    with _duckdb_lock:
        if _duckdb_conn is not None:
            _duckdb_conn.close()
            _duckdb_conn = None
