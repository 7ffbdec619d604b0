"""
Package reconciler.

Each run re-reads the package and its revisions, plans the revision writes
with :func:`plan_revisions`, applies them in order (create, update, delete)
and records the package status. Store failures other than conflicts are
reported on the package's Healthy condition and retried on a later run.
"""

from __future__ import annotations

import structlog

from pkgplane.apis.common import LABEL_PARENT_PACKAGE, Condition, ConditionStatus, ConditionType
from pkgplane.apis.interfaces import Package, PackageRevision
from pkgplane.apis.registry import PackageKind
from pkgplane.config import Settings, get_settings
from pkgplane.core.errors import (
    AlreadyExistsError,
    ConflictError,
    ContentInvalidError,
    NotFoundError,
    StoreError,
    TransientError,
)
from pkgplane.core.results import Result
from pkgplane.core.retry import retry_on_conflict
from pkgplane.package.planner import RevisionPlan, plan_revisions
from pkgplane.revision.certificates import CertificateNamer, RevisionScopedCertificates
from pkgplane.store.base import ObjectStore
from pkgplane.xpkg.fetcher import ContentFetcher
from pkgplane.xpkg.identity import identifier_for

logger = structlog.get_logger()

FINALIZER = "package.pkg.crossplane.io"

REASON_CREATE_FAILED = "RevisionCreateFailed"
REASON_UPDATE_FAILED = "RevisionUpdateFailed"
REASON_DELETE_FAILED = "RevisionDeleteFailed"
REASON_RESOLVE_FAILED = "ResolveIdentifierFailed"


class StepFailed(Exception):
    """A revision write failed; carries the Healthy reason to report."""

    def __init__(self, reason: str, error: StoreError) -> None:
        super().__init__(error.message)
        self.reason = reason
        self.error = error


class PackageReconciler:
    """Reconciles packages of one kind against their revisions."""

    def __init__(
        self,
        store: ObjectStore,
        kind: PackageKind,
        *,
        fetcher: ContentFetcher,
        certificates: CertificateNamer | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.kind = kind
        self.fetcher = fetcher
        self.certificates = certificates or RevisionScopedCertificates()
        self.settings = settings or get_settings()

    async def reconcile(self, name: str) -> Result:
        return await retry_on_conflict(
            self._reconcile, name, attempts=self.settings.conflict_retries
        )

    async def revisions_of(self, package: Package) -> list[PackageRevision]:
        items = await self.store.list(
            self.kind.revision, labels={LABEL_PARENT_PACKAGE: package.name}
        )
        return self.kind.revision_list_of(items).get_revisions()

    async def _reconcile(self, name: str) -> Result:
        try:
            package: Package = await self.store.get(self.kind.package, name)  # type: ignore[assignment]
        except NotFoundError:
            return Result("not_found")

        log = logger.bind(kind=package.kind, name=package.name)

        if package.deleting:
            return await self._finalize(package, log)

        if FINALIZER not in package.metadata.finalizers:
            package.metadata.finalizers.append(FINALIZER)
            package = await self.store.update(package)  # type: ignore[type-var]

        before = package.model_dump()  # type: ignore[attr-defined]

        try:
            digest = await self.fetcher.resolve_digest(
                package.source, package.package_pull_policy, package.package_pull_secrets
            )
            identifier = identifier_for(package.source, digest)
        except (ContentInvalidError, TransientError) as exc:
            return await self._fail(package, before, REASON_RESOLVE_FAILED, exc.message, log)

        plan = plan_revisions(
            self.kind, package, await self.revisions_of(package), identifier, self.certificates
        )
        try:
            await self._apply(plan, log)
        except StepFailed as exc:
            return await self._fail(package, before, exc.reason, exc.error.message, log)

        plan.apply_status(package)
        if package.model_dump() != before:  # type: ignore[attr-defined]
            await self.store.update(package)  # type: ignore[type-var]

        settled = (
            not plan.waiting
            and plan.healthy is not None
            and plan.healthy.is_true
            and plan.installed is not None
            and plan.installed.is_true
        )
        log.debug(
            "package_reconciled",
            target=plan.target,
            current=plan.current_revision,
            creates=len(plan.creates),
            updates=len(plan.updates),
            deletes=len(plan.deletes),
            settled=settled,
        )
        if settled:
            return Result("settled")
        return Result("progressing", requeue_after=self.settings.short_wait)

    async def _apply(self, plan: RevisionPlan, log: structlog.stdlib.BoundLogger) -> None:
        created: dict[str, PackageRevision] = {}
        for revision in plan.creates:
            try:
                created[revision.name] = await self.store.create(revision)  # type: ignore[type-var]
            except AlreadyExistsError:
                raise
            except StoreError as exc:
                raise StepFailed(REASON_CREATE_FAILED, exc) from exc
            log.info("revision_created", revision=revision.name, number=revision.revision)

        for revision in plan.updates:
            if revision.name in created:
                fresh = created[revision.name]
                fresh.desired_state = revision.desired_state
                revision = fresh
            try:
                await self.store.update(revision)  # type: ignore[type-var]
            except ConflictError:
                raise
            except NotFoundError as exc:
                raise ConflictError(
                    f"revision {revision.name} disappeared", details=exc.details
                ) from exc
            except StoreError as exc:
                raise StepFailed(REASON_UPDATE_FAILED, exc) from exc
            log.info("revision_updated", revision=revision.name, state=revision.desired_state)

        for revision in plan.deletes:
            try:
                await self.store.delete(revision)  # type: ignore[arg-type]
            except NotFoundError:
                continue
            except StoreError as exc:
                raise StepFailed(REASON_DELETE_FAILED, exc) from exc
            log.info("revision_deleted", revision=revision.name, number=revision.revision)

    async def _fail(
        self,
        package: Package,
        before: dict,
        reason: str,
        message: str,
        log: structlog.stdlib.BoundLogger,
    ) -> Result:
        package.set_conditions(
            Condition(
                type=ConditionType.HEALTHY,
                status=ConditionStatus.FALSE,
                reason=reason,
                message=message,
            )
        )
        if package.model_dump() != before:  # type: ignore[attr-defined]
            await self.store.update(package)  # type: ignore[type-var]
        log.warning("package_reconcile_failed", reason=reason, error=message)
        return Result("failed", requeue_after=self.settings.short_wait)

    async def _finalize(self, package: Package, log: structlog.stdlib.BoundLogger) -> Result:
        if FINALIZER not in package.metadata.finalizers:
            return Result("deleting")

        remaining = await self.revisions_of(package)
        for revision in remaining:
            if not revision.deleting:
                try:
                    await self.store.delete(revision)  # type: ignore[arg-type]
                except NotFoundError:
                    continue
        if remaining:
            log.debug("package_deleting", revisions=len(remaining))
            return Result("deleting", requeue_after=self.settings.short_wait)

        package.metadata.finalizers.remove(FINALIZER)
        await self.store.update(package)  # type: ignore[type-var]
        log.info("package_finalized")
        return Result("deleted")
