"""
Dependency status counters.

Every revision reports how many dependencies its package declares (found),
how many are installed at a satisfying version (installed) and how many can
not be satisfied (invalid). A dependency that is being installed on demand
is found but neither installed nor invalid yet.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pkgplane.apis.common import Condition, ConditionStatus, ConditionType
from pkgplane.apis.interfaces import PackageRevision

REASON_DEPENDENCIES_SATISFIED = "DependenciesSatisfied"
REASON_DEPENDENCIES_PENDING = "DependenciesPending"
REASON_DEPENDENCIES_INVALID = "InvalidDependencies"
REASON_DEPENDENCIES_SKIPPED = "DependencyResolutionSkipped"


@dataclass(frozen=True)
class DependencyStatus:
    """Immutable (found, installed, invalid) triple.

    Construction enforces ``0 <= installed <= found`` and
    ``0 <= invalid <= found``.
    """

    found: int = 0
    installed: int = 0
    invalid: int = 0

    def __post_init__(self) -> None:
        if self.found < 0 or self.installed < 0 or self.invalid < 0:
            raise ValueError(f"dependency counters must be non-negative: {self}")
        if self.installed > self.found or self.invalid > self.found:
            raise ValueError(f"dependency counters exceed found: {self}")

    @classmethod
    def of(cls, revision: PackageRevision) -> DependencyStatus:
        return cls(*revision.get_dependency_status())

    @property
    def pending(self) -> int:
        return self.found - self.installed - self.invalid

    @property
    def satisfied(self) -> bool:
        return self.installed == self.found

    def apply_to(self, revision: PackageRevision) -> None:
        revision.set_dependency_status(self.found, self.installed, self.invalid)


SKIPPED = DependencyStatus()


@dataclass
class DependencyStatusTracker:
    """Accumulates per-dependency outcomes during one resolution pass."""

    found: int = 0
    installed: int = 0
    invalid: int = 0
    problems: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)

    def record_installed(self, package: str) -> None:
        self.found += 1
        self.installed += 1

    def record_pending(self, package: str) -> None:
        self.found += 1
        self.pending.append(package)

    def record_invalid(self, package: str, reason: str) -> None:
        self.found += 1
        self.invalid += 1
        self.problems.append(f"{package}: {reason}")

    def status(self) -> DependencyStatus:
        return DependencyStatus(self.found, self.installed, self.invalid)

    def condition(self) -> Condition:
        if self.problems:
            return Condition(
                type=ConditionType.DEPENDENCIES,
                status=ConditionStatus.FALSE,
                reason=REASON_DEPENDENCIES_INVALID,
                message="; ".join(self.problems),
            )
        if self.pending:
            return Condition(
                type=ConditionType.DEPENDENCIES,
                status=ConditionStatus.FALSE,
                reason=REASON_DEPENDENCIES_PENDING,
                message="installing " + ", ".join(self.pending),
            )
        return Condition(
            type=ConditionType.DEPENDENCIES,
            status=ConditionStatus.TRUE,
            reason=REASON_DEPENDENCIES_SATISFIED,
        )


def skipped_condition() -> Condition:
    return Condition(
        type=ConditionType.DEPENDENCIES,
        status=ConditionStatus.TRUE,
        reason=REASON_DEPENDENCIES_SKIPPED,
    )
