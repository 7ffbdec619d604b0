"""Conflict retry for read-modify-write reconciliations."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pkgplane.core.errors import AlreadyExistsError, ConflictError

logger = structlog.get_logger()

T = TypeVar("T")


async def retry_on_conflict(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    attempts: int = 5,
    **kwargs: Any,
) -> T:
    """Run ``func`` until it completes without a stale-write conflict.

    Each attempt starts from scratch, so ``func`` must re-read everything it
    acts on. Conflicts left after ``attempts`` propagate to the caller.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception_type((ConflictError, AlreadyExistsError)),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.05, min=0, max=1),
        reraise=True,
    )
    async for attempt in retrying:
        if attempt.retry_state.attempt_number > 1:
            logger.debug(
                "conflict_retry",
                func=getattr(func, "__name__", repr(func)),
                attempt=attempt.retry_state.attempt_number,
            )
        with attempt:
            return await func(*args, **kwargs)
    raise AssertionError("unreachable")  # pragma: no cover
