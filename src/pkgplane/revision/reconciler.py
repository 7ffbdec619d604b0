"""
Revision reconciler.

Drives one package revision through its install state machine:

    Pending -> Installing -> ActiveHealthy | InactiveParked
                          -> Failed (invalid content, incompatible platform)
    any     -> Deleting (finalizer releases installed objects and workload)

Each run re-reads the revision, recomputes its status from the package
content and writes it back only when something changed. A stale write
restarts the run from a fresh read.
"""

from __future__ import annotations

from enum import StrEnum

import structlog

from pkgplane.apis.common import (
    LABEL_PARENT_PACKAGE,
    LABEL_PROVIDER_FAMILY,
    Condition,
    ConditionStatus,
    ConditionType,
    ControllerReference,
    DesiredState,
)
from pkgplane.apis.interfaces import PackageRevision
from pkgplane.apis.registry import PackageKind
from pkgplane.config import Settings, get_settings
from pkgplane.core.errors import ContentInvalidError, NotFoundError, PlatformConstraintError
from pkgplane.core.results import Result
from pkgplane.core.retry import retry_on_conflict
from pkgplane.dependency.resolver import DependencyResolver
from pkgplane.revision.certificates import (
    CertificateNamer,
    RevisionScopedCertificates,
    assign_content_secrets,
)
from pkgplane.revision.establisher import ObjectEstablisher
from pkgplane.revision.runtime import ControllerRuntime
from pkgplane.store.base import ObjectStore
from pkgplane.xpkg.fetcher import ContentFetcher
from pkgplane.xpkg.manifest import PackageContent

logger = structlog.get_logger()

FINALIZER = "revision.pkg.crossplane.io"

REASON_HEALTHY = "HealthyPackageRevision"
REASON_INACTIVE = "InactivePackageRevision"
REASON_UNHEALTHY = "UnhealthyPackageRevision"
REASON_INVALID_CONTENTS = "InvalidPackageContents"
REASON_INCOMPATIBLE = "IncompatiblePlatformVersion"


class RevisionPhase(StrEnum):
    PENDING = "Pending"
    INSTALLING = "Installing"
    ACTIVE_HEALTHY = "ActiveHealthy"
    INACTIVE_PARKED = "InactiveParked"
    FAILED = "Failed"
    DELETING = "Deleting"


def healthy(reason: str, message: str = "") -> Condition:
    return Condition(
        type=ConditionType.HEALTHY, status=ConditionStatus.TRUE, reason=reason, message=message
    )


def unhealthy(reason: str, message: str = "") -> Condition:
    return Condition(
        type=ConditionType.HEALTHY, status=ConditionStatus.FALSE, reason=reason, message=message
    )


def is_ready(revision: PackageRevision) -> bool:
    """Whether an active revision has its workload up and objects installed."""
    condition = revision.get_condition(ConditionType.HEALTHY)
    return condition.is_true and condition.reason == REASON_HEALTHY


class RevisionReconciler:
    """Reconciles the revisions of one package kind."""

    def __init__(
        self,
        store: ObjectStore,
        kind: PackageKind,
        *,
        fetcher: ContentFetcher,
        establisher: ObjectEstablisher,
        runtime: ControllerRuntime,
        resolver: DependencyResolver,
        certificates: CertificateNamer | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.kind = kind
        self.fetcher = fetcher
        self.establisher = establisher
        self.runtime = runtime
        self.resolver = resolver
        self.certificates = certificates or RevisionScopedCertificates()
        self.settings = settings or get_settings()

    async def reconcile(self, name: str) -> Result:
        return await retry_on_conflict(
            self._reconcile, name, attempts=self.settings.conflict_retries
        )

    async def _reconcile(self, name: str) -> Result:
        try:
            revision: PackageRevision = await self.store.get(self.kind.revision, name)  # type: ignore[assignment]
        except NotFoundError:
            return Result("not_found")

        log = logger.bind(kind=revision.kind, name=revision.name)

        if revision.deleting:
            return await self._finalize(revision, log)

        if FINALIZER not in revision.metadata.finalizers:
            revision.metadata.finalizers.append(FINALIZER)
            revision = await self.store.update(revision)  # type: ignore[type-var]

        before = revision.model_dump()  # type: ignore[attr-defined]

        try:
            content = await self.fetcher.fetch(
                revision.source, revision.package_pull_policy, revision.package_pull_secrets
            )
            self.resolver.check_platform(revision, content)
        except ContentInvalidError as exc:
            return await self._fail(revision, before, REASON_INVALID_CONTENTS, exc, log)
        except PlatformConstraintError as exc:
            return await self._fail(revision, before, REASON_INCOMPATIBLE, exc, log)

        # Only active revisions resolve, so a parked revision never installs packages.
        resolution = None
        if revision.desired_state == DesiredState.ACTIVE:
            resolution = await self.resolver.resolve(revision, content)
            resolution.status.apply_to(revision)
            revision.set_conditions(resolution.condition)

        try:
            await self._install(revision, content)
        except ContentInvalidError as exc:
            return await self._fail(revision, before, REASON_INVALID_CONTENTS, exc, log)

        phase, requeue_after = await self._run_controller(revision, content)
        if resolution is not None:
            if phase == RevisionPhase.ACTIVE_HEALTHY and resolution.status.invalid:
                phase = RevisionPhase.INSTALLING
            if requeue_after is None and resolution.status.pending:
                requeue_after = self.settings.short_wait

        await self._write(revision, before)
        found, installed, invalid = revision.get_dependency_status()
        log.debug(
            "revision_reconciled",
            phase=phase,
            found=found,
            installed=installed,
            invalid=invalid,
        )
        return Result(phase.value, requeue_after=requeue_after)

    async def _install(self, revision: PackageRevision, content: PackageContent) -> None:
        family = (
            content.labels.get(LABEL_PROVIDER_FAMILY)
            or revision.metadata.labels.get(LABEL_PARENT_PACKAGE)
            or revision.name
        )
        refs = await self.establisher.establish(
            revision,
            content.objects,
            family=family,
            control=revision.desired_state == DesiredState.ACTIVE,
        )
        current = {ref.key for ref in refs}
        stale = [ref for ref in revision.object_refs if ref.key not in current]
        if stale:
            await self.establisher.release(revision, stale)
        revision.object_refs = refs

        if LABEL_PROVIDER_FAMILY in content.labels:
            revision.metadata.labels[LABEL_PROVIDER_FAMILY] = content.labels[LABEL_PROVIDER_FAMILY]
        revision.permission_requests = list(content.permission_requests)
        assign_content_secrets(
            self.certificates,
            revision,
            webhook=content.needs_webhook_tls,
            ess=self.kind.has_controller and content.needs_ess_tls,
        )

    async def _run_controller(
        self, revision: PackageRevision, content: PackageContent
    ) -> tuple[RevisionPhase, float | None]:
        if revision.desired_state != DesiredState.ACTIVE:
            if self.kind.has_controller:
                await self.runtime.scale_down(revision)
            revision.set_conditions(healthy(REASON_INACTIVE))
            return RevisionPhase.INACTIVE_PARKED, None

        if self.kind.has_controller:
            image = content.meta.spec.controller.image or revision.source
            workload = await self.runtime.ensure_running(revision, image)
            revision.controller_ref = ControllerReference(name=workload.name)
            if workload.endpoint:
                revision.endpoint = workload.endpoint
            if not workload.ready:
                revision.set_conditions(
                    unhealthy(REASON_UNHEALTHY, f"controller {workload.name} is not ready")
                )
                return RevisionPhase.INSTALLING, self.settings.short_wait

        revision.set_conditions(healthy(REASON_HEALTHY))
        return RevisionPhase.ACTIVE_HEALTHY, None

    async def _fail(
        self,
        revision: PackageRevision,
        before: dict,
        reason: str,
        exc: Exception,
        log: structlog.stdlib.BoundLogger,
    ) -> Result:
        message = getattr(exc, "message", str(exc))
        revision.set_conditions(unhealthy(reason, message))
        await self._write(revision, before)
        log.warning("revision_failed", reason=reason, error=message)
        return Result(RevisionPhase.FAILED.value, requeue_after=self.settings.long_wait)

    async def _write(self, revision: PackageRevision, before: dict) -> None:
        if revision.model_dump() != before:  # type: ignore[attr-defined]
            await self.store.update(revision)  # type: ignore[type-var]

    async def _finalize(
        self, revision: PackageRevision, log: structlog.stdlib.BoundLogger
    ) -> Result:
        if FINALIZER not in revision.metadata.finalizers:
            return Result(RevisionPhase.DELETING.value)

        deleted = await self.establisher.release(revision, revision.object_refs)
        if self.kind.has_controller:
            await self.runtime.remove(revision)
        revision.object_refs = []
        revision.metadata.finalizers.remove(FINALIZER)
        await self.store.update(revision)  # type: ignore[type-var]
        log.info("revision_finalized", deleted_objects=len(deleted))
        return Result(RevisionPhase.DELETING.value)
