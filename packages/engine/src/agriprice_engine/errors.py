"""
errors.py — Engine error taxonomy.

Every error the engine raises on purpose derives from EngineError so that
the CLI and the API can map them in one place:

    NotFound                  -> 404
    HasDependents             -> 409
    InvalidLink               -> 422
    UnknownCurrencyOrUnit     -> 422 (strict conversion helpers only)
    IncompatibleDimension     -> 422 (strict conversion helpers only)
    AggregationPartialFailure -> 500
"""

from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Base class for engine errors."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(EngineError):
    code = "NOT_FOUND"


class HasDependents(EngineError):
    """Deleting a canonical record that is still referenced."""

    code = "HAS_DEPENDENTS"


class InvalidLink(EngineError):
    """A link or canonical record that would break a graph invariant."""

    code = "INVALID_LINK"


class UnknownCurrencyOrUnit(EngineError):
    code = "UNKNOWN_CURRENCY_OR_UNIT"


class IncompatibleDimension(EngineError):
    """Unit conversion across dimensions (mass vs volume vs piece)."""

    code = "INCOMPATIBLE_DIMENSION"


class AggregationPartialFailure(EngineError):
    """The delete+insert of a product's aggregates did not commit."""

    code = "AGGREGATION_PARTIAL_FAILURE"
