"""
A level-triggered control loop.

Workers pull object names from a :class:`WorkQueue` and run the reconcile
function for each. A run that exceeds the deadline is abandoned; a run that
raises is retried with per-key exponential backoff; a run that returns a
``Result`` with ``requeue_after`` is retried after that delay.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

from pkgplane.config import Settings, get_settings
from pkgplane.core.results import Result
from pkgplane.manager.queue import WorkQueue

logger = structlog.get_logger()

ReconcileFunc = Callable[[str], Awaitable[Result]]


class Controller:
    def __init__(
        self,
        name: str,
        reconcile: ReconcileFunc,
        settings: Settings | None = None,
        *,
        workers: int | None = None,
    ) -> None:
        self.name = name
        self.reconcile = reconcile
        self.settings = settings or get_settings()
        self.workers = workers or self.settings.workers
        self.queue = WorkQueue()
        self.failures: dict[str, int] = {}
        self._tasks: list[asyncio.Task[None]] = []

    def enqueue(self, key: str) -> None:
        self.queue.add(key)

    def backoff(self, key: str) -> float:
        """Record a failure of ``key`` and return how long to wait before retrying."""
        count = self.failures.get(key, 0) + 1
        self.failures[key] = count
        return min(self.settings.base_backoff * 2 ** (count - 1), self.settings.max_backoff)

    async def process(self, key: str) -> Result | None:
        """Run one reconciliation of ``key`` and schedule any retry."""
        log = logger.bind(controller=self.name, key=key)
        try:
            async with asyncio.timeout(self.settings.reconcile_timeout):
                result = await self.reconcile(key)
        except TimeoutError:
            delay = self.backoff(key)
            log.warning("reconcile_timeout", timeout=self.settings.reconcile_timeout, retry_in=delay)
            self.queue.add_after(key, delay)
            return None
        except Exception as exc:
            delay = self.backoff(key)
            log.error(
                "reconcile_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                retry_in=delay,
            )
            self.queue.add_after(key, delay)
            return None
        finally:
            self.queue.done(key)

        self.failures.pop(key, None)
        if result.requeue:
            self.queue.add_after(key, result.requeue_after)
        log.debug("reconciled", outcome=result.outcome, requeue_after=result.requeue_after)
        return result

    async def _worker(self) -> None:
        while True:
            key = await self.queue.get()
            await self.process(key)

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(), name=f"{self.name}-worker-{i}")
            for i in range(self.workers)
        ]
        logger.debug("controller_started", controller=self.name, workers=self.workers)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self.queue.shutdown()

    @property
    def idle(self) -> bool:
        return self.queue.idle
