"""
utils/retry.py — Exponential-backoff retry for synchronous engine jobs.

Uses tenacity under the hood. Logs each retry with structlog so a flaky
write is observable without hiding the final failure.

Usage:
    from agriprice_engine.utils.retry import with_retry_sync

    @with_retry_sync(max_attempts=3, base_delay=0.5, retry_on=AggregationPartialFailure)
    def replace(product_id: str) -> int: ...

    # Or wrap a callable at runtime:
    written = with_retry_sync(max_attempts=attempts)(aggregator.recompute_for_product)(pid)
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def with_retry_sync(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
) -> Callable[[F], F]:
    """
    Decorator that retries a synchronous function with exponential backoff.

    Delays: base_delay * 2^(attempt-1), capped at max_delay.
    The last exception is re-raised once attempts are exhausted.

    Args:
        max_attempts: Total attempts before raising.
        base_delay:   Initial delay in seconds (0 disables sleeping).
        max_delay:    Maximum delay cap in seconds.
        retry_on:     Exception type(s) that trigger a retry.

    Returns:
        Decorated function.
    """

    def decorator(fn: F) -> F:
        attempt_log = log.bind(function=getattr(fn, "__qualname__", repr(fn)))

        def _before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            attempt_log.warning(
                "retry_attempt",
                attempt=state.attempt_number,
                max_attempts=max_attempts,
                delay_s=state.next_action.sleep if state.next_action else None,
                error=str(exc) if exc else None,
            )

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            retrying = Retrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=base_delay, max=max_delay),
                retry=retry_if_exception_type(retry_on),
                before_sleep=_before_sleep,
                reraise=True,
            )
            try:
                return retrying(fn, *args, **kwargs)
            except retry_on as exc:
                attempt_log.error(
                    "retry_exhausted",
                    max_attempts=max_attempts,
                    error=str(exc),
                )
                raise

        return wrapper  # type: ignore[return-value]

    return decorator
