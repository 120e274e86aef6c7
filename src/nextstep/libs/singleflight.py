from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class SingleFlight:
    """Collapse concurrent calls sharing a key into one in-flight task.

    Callers arriving while a task for the key is running await that task's
    result (or exception) instead of starting their own.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._inflight: dict[Hashable, asyncio.Task[Any]] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._inflight

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.debug("singleflight_joined", group=self.name, key=str(key))
        # Shield so one cancelled waiter does not cancel the shared computation
        return await asyncio.shield(task)

    def _forget(self, key: Hashable, task: asyncio.Task[Any]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
