"""Retry and error translation for storage operations.

Transient Qdrant failures (connection errors, timeouts, 5xx) are retried
with exponential backoff. Anything still failing afterwards surfaces as a
PersistenceError so callers never see driver-specific exceptions.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx
from qdrant_client.http.exceptions import UnexpectedResponse
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from hookrelay.exceptions import PersistenceError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts with context."""
    if retry_state.attempt_number > 1:
        logger.warning(
            "Retrying Qdrant operation",
            extra={
                "attempt": retry_state.attempt_number,
                "fn_name": retry_state.fn.__name__ if retry_state.fn else "unknown",
                "exception": str(retry_state.outcome.exception()) if retry_state.outcome else None,
            },
        )


# Only retries network/server errors, not client errors (4xx)
qdrant_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(
        (
            httpx.ConnectError,
            httpx.TimeoutException,
            UnexpectedResponse,
        )
    ),
    before_sleep=_log_retry,
    reraise=True,
)


def storage_operation(fn: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Retry transient errors, then translate any failure into PersistenceError."""
    retried = qdrant_retry(fn)

    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await retried(*args, **kwargs)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("Storage operation %s failed: %s", fn.__name__, e)
            raise PersistenceError(f"Persistence failed during {fn.__name__}: {e}") from e

    return wrapper
