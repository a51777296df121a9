"""Fire-and-forget writes that never block a response."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any


class BackgroundWriter:
    """Runs best-effort coroutines as tasks and keeps them alive until done.

    Failures are reported through the injected logger and never propagate to
    the code that scheduled the write. :meth:`drain` awaits everything still
    pending, for tests and graceful shutdown.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._tasks: set[asyncio.Task[Any]] = set()
        self.failures = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, coro: Coroutine[Any, Any, Any], *, description: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(self._run(coro, description), name=f"background:{description}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, Any], description: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            self._logger.warning("Background write failed (%s): %s", description, e)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
