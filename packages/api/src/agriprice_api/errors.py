"""Engine error -> HTTP response mapping."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from agriprice_engine.errors import (
    AggregationPartialFailure,
    EngineError,
    HasDependents,
    IncompatibleDimension,
    InvalidLink,
    NotFound,
    UnknownCurrencyOrUnit,
)

from agriprice_api.responses import error_response

logger = structlog.get_logger()

STATUS_CODES: dict[type[EngineError], int] = {
    NotFound: 404,
    HasDependents: 409,
    InvalidLink: 422,
    UnknownCurrencyOrUnit: 422,
    IncompatibleDimension: 422,
    AggregationPartialFailure: 500,
}


def status_for(exc: EngineError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status = status_for(exc)
    logger.warning(
        "engine_error",
        path=request.url.path,
        code=exc.code,
        status=status,
        message=exc.message,
    )
    return JSONResponse(
        status_code=status,
        content=error_response(exc.code, exc.message, details=exc.details),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EngineError, engine_error_handler)  # type: ignore[arg-type]
