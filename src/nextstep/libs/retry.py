from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    backoff_seconds: float,
    retry_on: tuple[type[BaseException], ...],
    event: str,
    **log_fields: object,
) -> T:
    """Run ``fn`` until it succeeds or ``attempts`` are exhausted.

    Waits ``backoff_seconds * 2**n`` between attempts and re-raises the last
    error once the bound is reached.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return await fn()
        except retry_on as exc:
            if attempt == attempts - 1:
                await logger.aerror(
                    f"{event}_exhausted", attempts=attempts, error=str(exc), **log_fields
                )
                raise
            await logger.awarning(
                f"{event}_retry", attempt=attempt + 1, error=str(exc), **log_fields
            )
            if backoff_seconds > 0:
                await asyncio.sleep(backoff_seconds * 2**attempt)
    raise RuntimeError("unreachable")  # pragma: no cover
