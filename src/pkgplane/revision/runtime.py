"""Controller workloads run on behalf of active revisions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import structlog

from pkgplane.apis.interfaces import PackageRevision

logger = structlog.get_logger()


@dataclass(frozen=True)
class WorkloadStatus:
    name: str
    ready: bool
    replicas: int = 1
    endpoint: str | None = None


class ControllerRuntime(Protocol):
    async def ensure_running(self, revision: PackageRevision, image: str) -> WorkloadStatus:
        ...

    async def scale_down(self, revision: PackageRevision) -> None:
        ...

    async def remove(self, revision: PackageRevision) -> None:
        ...


def workload_name(revision: PackageRevision) -> str:
    return revision.name


class MemoryControllerRuntime:
    """Tracks workloads in memory.

    Workloads become ready on their first ``ensure_running`` call unless
    ``ready`` is false; tests flip readiness per workload with
    :meth:`set_ready`.
    """

    def __init__(self, *, ready: bool = True, endpoint_port: int = 9443) -> None:
        self.default_ready = ready
        self.endpoint_port = endpoint_port
        self.workloads: dict[str, WorkloadStatus] = {}
        self._ready: dict[str, bool] = {}

    def set_ready(self, name: str, ready: bool = True) -> None:
        self._ready[name] = ready
        if name in self.workloads:
            current = self.workloads[name]
            self.workloads[name] = WorkloadStatus(
                name=name,
                ready=ready and current.replicas > 0,
                replicas=current.replicas,
                endpoint=current.endpoint,
            )

    async def ensure_running(self, revision: PackageRevision, image: str) -> WorkloadStatus:
        name = workload_name(revision)
        ready = self._ready.get(name, self.default_ready)
        status = WorkloadStatus(
            name=name,
            ready=ready,
            replicas=1,
            endpoint=f"dns:///{name}:{self.endpoint_port}" if ready else None,
        )
        if self.workloads.get(name) != status:
            logger.debug("workload_running", workload=name, image=image, ready=ready)
        self.workloads[name] = status
        return status

    async def scale_down(self, revision: PackageRevision) -> None:
        name = workload_name(revision)
        if name in self.workloads:
            self.workloads[name] = WorkloadStatus(name=name, ready=False, replicas=0)

    async def remove(self, revision: PackageRevision) -> None:
        if self.workloads.pop(workload_name(revision), None) is not None:
            logger.debug("workload_removed", workload=workload_name(revision))
