"""
Dependency resolution for package revisions.

The resolver inspects only a revision's direct dependencies. Each one is
matched by repository against the packages already in the store:

- installed at a version meeting the constraint: installed
- installed at a version that does not: invalid (the other package is never
  changed to make it fit)
- not installed: a package is created for the highest tag meeting the
  constraint, and the dependency stays pending until a later pass finds it

Deep chains converge as each package's own revisions are resolved in turn,
so dependency cycles need no special handling.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import structlog

from pkgplane.apis.common import Condition
from pkgplane.apis.interfaces import Package, PackageRevision
from pkgplane.apis.registry import PackageKind, get_kind, package_kinds
from pkgplane.config import Settings, get_settings
from pkgplane.core.errors import AlreadyExistsError, ContentInvalidError, PlatformConstraintError
from pkgplane.dependency.constraints import (
    InvalidConstraintError,
    highest_satisfying,
    satisfies,
    validate_constraint,
)
from pkgplane.dependency.status import (
    SKIPPED,
    DependencyStatus,
    DependencyStatusTracker,
    skipped_condition,
)
from pkgplane.store.base import ObjectStore
from pkgplane.xpkg.fetcher import ContentFetcher
from pkgplane.xpkg.identity import (
    DIGEST_PREFIX,
    package_name_for,
    parse_source,
    same_repository,
)
from pkgplane.xpkg.manifest import Dependency, PackageContent

logger = structlog.get_logger()


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one revision's dependencies."""

    status: DependencyStatus
    condition: Condition
    created: list[str] = field(default_factory=list)


def installed_version(package: Package, constraint: str) -> str | None:
    """Version of an installed package to test ``constraint`` against."""
    ref = parse_source(package.source)
    if constraint.strip().startswith(DIGEST_PREFIX):
        return package.current_identifier or ref.digest
    return ref.tag or ref.digest


class DependencyResolver:
    def __init__(
        self,
        store: ObjectStore,
        fetcher: ContentFetcher,
        settings: Settings | None = None,
        kinds: Iterable[PackageKind] | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.settings = settings or get_settings()
        self.kinds = list(kinds) if kinds is not None else package_kinds()

    def check_platform(self, revision: PackageRevision, content: PackageContent) -> None:
        """Check the package supports the running platform version.

        Raises:
            PlatformConstraintError: if it does not, unless the revision
                ignores platform constraints.
        """
        constraint = content.platform_constraint
        if revision.ignore_crossplane_constraints or not constraint:
            return
        try:
            ok = satisfies(self.settings.platform_version, constraint)
        except InvalidConstraintError as exc:
            raise PlatformConstraintError(
                f"Invalid platform version constraint '{constraint}'",
                details={"revision": revision.name},
            ) from exc
        if not ok:
            raise PlatformConstraintError(
                f"Package requires platform version {constraint}, "
                f"running {self.settings.platform_version}",
                details={"revision": revision.name},
            )

    async def _installed(self) -> dict[str, list[Package]]:
        index: dict[str, list[Package]] = {}
        for kind in self.kinds:
            for package in await self.store.list(kind.package):
                try:
                    repository = parse_source(package.source).repository  # type: ignore[attr-defined]
                except ContentInvalidError:
                    continue
                index.setdefault(repository, []).append(package)  # type: ignore[arg-type]
        return index

    async def resolve(self, revision: PackageRevision, content: PackageContent) -> Resolution:
        """Resolve the direct dependencies ``content`` declares for ``revision``."""
        if revision.skip_dependency_resolution:
            return Resolution(status=SKIPPED, condition=skipped_condition())

        log = logger.bind(revision=revision.name)
        tracker = DependencyStatusTracker()
        created: list[str] = []
        installed = await self._installed() if content.dependencies else {}

        for dep in content.dependencies:
            try:
                repository = parse_source(dep.package).repository
                validate_constraint(dep.version)
            except (ContentInvalidError, InvalidConstraintError) as exc:
                tracker.record_invalid(dep.package, str(exc))
                continue

            existing = installed.get(repository)
            if existing:
                self._check_existing(tracker, dep, repository, existing[0])
                continue

            name = await self._install(tracker, dep, repository)
            if name:
                created.append(name)

        status = tracker.status()
        log.debug(
            "dependencies_resolved",
            found=status.found,
            installed=status.installed,
            invalid=status.invalid,
            created=created,
        )
        return Resolution(status=status, condition=tracker.condition(), created=created)

    def _check_existing(
        self,
        tracker: DependencyStatusTracker,
        dep: Dependency,
        repository: str,
        package: Package,
    ) -> None:
        if package.kind != dep.kind:
            tracker.record_invalid(
                repository, f"installed as a {package.kind}, required as a {dep.kind}"
            )
            return
        version = installed_version(package, dep.version)
        if version is not None and satisfies(version, dep.version):
            tracker.record_installed(repository)
        else:
            tracker.record_invalid(
                repository,
                f"installed version {version or 'unknown'} does not satisfy {dep.version}",
            )

    async def _install(
        self,
        tracker: DependencyStatusTracker,
        dep: Dependency,
        repository: str,
    ) -> str | None:
        if not self.settings.auto_install_dependencies:
            tracker.record_invalid(repository, "not installed")
            return None

        if dep.version.strip().startswith(DIGEST_PREFIX):
            source = f"{repository}@{dep.version.strip()}"
        else:
            tag = highest_satisfying(await self.fetcher.tags(repository), dep.version)
            if tag is None:
                tracker.record_invalid(repository, f"no version satisfies {dep.version}")
                return None
            source = parse_source(dep.package).with_tag(tag)

        kind = get_kind(dep.kind)
        name = package_name_for(repository)
        try:
            package = kind.new_package(name, source)
            package.package_pull_policy = self.settings.default_pull_policy
            await self.store.create(package)  # type: ignore[arg-type]
        except AlreadyExistsError:
            current = await self.store.get(kind.package, name)
            if not same_repository(current.source, dep.package):  # type: ignore[attr-defined]
                tracker.record_invalid(
                    repository, f"package name {name} is taken by another source"
                )
                return None
            tracker.record_pending(repository)
            return None

        logger.info("dependency_installing", package=name, kind=dep.kind, source=source)
        tracker.record_pending(repository)
        return name
