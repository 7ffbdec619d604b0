"""
Controller manager.

Runs one package controller and one revision controller per package kind
over a shared store. Store watch events enqueue the changed object; a
revision event also enqueues its parent package, which is how a package
learns that its target revision became ready. A periodic resync enqueues
every object so that lost events are eventually made up for.
"""

from __future__ import annotations

import asyncio
import time
from typing import Iterable

import structlog

from pkgplane.apis.common import LABEL_PARENT_PACKAGE
from pkgplane.apis.registry import PackageKind, package_kinds
from pkgplane.config import Settings, get_settings
from pkgplane.core.errors import NotConvergedError
from pkgplane.dependency.resolver import DependencyResolver
from pkgplane.manager.controller import Controller
from pkgplane.package.reconciler import PackageReconciler
from pkgplane.revision.certificates import CertificateNamer, RevisionScopedCertificates
from pkgplane.revision.establisher import MemoryEstablisher, ObjectEstablisher
from pkgplane.revision.reconciler import RevisionReconciler
from pkgplane.revision.runtime import ControllerRuntime, MemoryControllerRuntime
from pkgplane.store.base import ObjectStore, WatchEvent
from pkgplane.xpkg.fetcher import ContentFetcher

logger = structlog.get_logger()

# Consecutive idle polls required before the manager counts as converged.
IDLE_POLLS = 3
POLL_INTERVAL = 0.01


class ControllerManager:
    def __init__(
        self,
        store: ObjectStore,
        fetcher: ContentFetcher,
        *,
        establisher: ObjectEstablisher | None = None,
        runtime: ControllerRuntime | None = None,
        certificates: CertificateNamer | None = None,
        settings: Settings | None = None,
        kinds: Iterable[PackageKind] | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.kinds = list(kinds) if kinds is not None else package_kinds()
        self.establisher = establisher or MemoryEstablisher()
        self.runtime = runtime or MemoryControllerRuntime()
        certificates = certificates or RevisionScopedCertificates()
        resolver = DependencyResolver(store, fetcher, self.settings, self.kinds)

        self.package_controllers: dict[str, Controller] = {}
        self.revision_controllers: dict[str, Controller] = {}
        for kind in self.kinds:
            packages = PackageReconciler(
                store, kind, fetcher=fetcher, certificates=certificates, settings=self.settings
            )
            revisions = RevisionReconciler(
                store,
                kind,
                fetcher=fetcher,
                establisher=self.establisher,
                runtime=self.runtime,
                resolver=resolver,
                certificates=certificates,
                settings=self.settings,
            )
            self.package_controllers[kind.name] = Controller(
                kind.name.lower(), packages.reconcile, self.settings
            )
            self.revision_controllers[kind.revision_kind] = Controller(
                kind.revision_kind.lower(), revisions.reconcile, self.settings
            )

        self._tasks: list[asyncio.Task[None]] = []
        self._busy = False

    @property
    def controllers(self) -> list[Controller]:
        return [*self.package_controllers.values(), *self.revision_controllers.values()]

    def handle(self, event: WatchEvent) -> None:
        """Route a watch event to the controllers interested in it."""
        if event.kind in self.package_controllers:
            self.package_controllers[event.kind].enqueue(event.name)
            return
        if event.kind in self.revision_controllers:
            self.revision_controllers[event.kind].enqueue(event.name)
            parent = event.labels.get(LABEL_PARENT_PACKAGE)
            owner = next((k for k in self.kinds if k.revision_kind == event.kind), None)
            if parent and owner is not None:
                self.package_controllers[owner.name].enqueue(parent)

    async def resync(self) -> None:
        """Enqueue every package and revision."""
        for kind in self.kinds:
            for package in await self.store.list(kind.package):
                self.package_controllers[kind.name].enqueue(package.name)
            for revision in await self.store.list(kind.revision):
                self.revision_controllers[kind.revision_kind].enqueue(revision.name)

    async def wake_dependents(self) -> None:
        """Enqueue revisions still waiting on dependencies.

        Called when a package changes, since that package may be one of the
        dependencies they wait for.
        """
        for kind in self.kinds:
            for revision in await self.store.list(kind.revision):
                found, installed, _ = revision.get_dependency_status()  # type: ignore[attr-defined]
                if installed < found:
                    self.revision_controllers[kind.revision_kind].enqueue(revision.name)

    async def _watch(self) -> None:
        async for event in self.store.watch():
            self._busy = True
            try:
                self.handle(event)
                if event.kind in self.package_controllers:
                    await self.wake_dependents()
            except Exception as exc:
                logger.error("watch_event_failed", kind=event.kind, name=event.name, error=str(exc))
            finally:
                self._busy = False

    async def _resync_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.resync_period)
            try:
                await self.resync()
            except Exception as exc:
                logger.error("resync_failed", error=str(exc))

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks.append(asyncio.create_task(self._watch(), name="watch"))
        # Let the watch subscribe before the initial listing.
        await asyncio.sleep(0)
        for controller in self.controllers:
            controller.start()
        await self.resync()
        self._tasks.append(asyncio.create_task(self._resync_loop(), name="resync"))
        logger.info(
            "manager_started",
            kinds=[k.name for k in self.kinds],
            workers=self.settings.workers,
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        for controller in self.controllers:
            await controller.stop()
        logger.info("manager_stopped")

    @property
    def idle(self) -> bool:
        return not self._busy and all(c.idle for c in self.controllers)

    async def converge(self, timeout: float = 10.0) -> None:
        """Wait until no controller has work queued or in flight.

        Delayed retries do not count as work; watch events produced by the
        last writes do, so idleness must hold over several polls.

        Raises:
            NotConvergedError: if work is still pending after ``timeout``.
        """
        deadline = time.monotonic() + timeout
        idle_polls = 0
        while idle_polls < IDLE_POLLS:
            if time.monotonic() > deadline:
                raise NotConvergedError(
                    f"Controllers did not settle within {timeout}s",
                    details={"queued": sum(len(c.queue) for c in self.controllers)},
                )
            await asyncio.sleep(POLL_INTERVAL)
            idle_polls = idle_polls + 1 if self.idle else 0

    async def run_until_converged(self, timeout: float = 30.0) -> None:
        await self.start()
        try:
            await self.converge(timeout)
        finally:
            await self.stop()
