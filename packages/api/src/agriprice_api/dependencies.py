"""Shared FastAPI dependencies."""

from __future__ import annotations

import threading

from agriprice_engine.service import PriceEngine

_engine_lock = threading.Lock()
_engine: PriceEngine | None = None


def get_engine() -> PriceEngine:
    """
    Process-wide PriceEngine over the configured DuckDB file.

    Tests replace it through app.dependency_overrides[get_engine].
    """
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = PriceEngine.from_settings()
        return _engine


__all__ = ["PriceEngine", "get_engine"]
