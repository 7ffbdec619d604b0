"""
Revision planning for a package.

``plan_revisions`` is a pure function from a package, its revisions and the
identifier its source resolves to, to the revision writes that move the
package toward that identifier and the package status that results. Steps
run in order against one in-memory working set:

1. ensure a revision exists for the identifier (numbered max + 1)
2. apply the activation policy
3. garbage-collect inactive revisions beyond the history limit
4. derive the package status from the active revision

Planning the state that results from applying a plan yields an empty plan.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Sequence

from pkgplane.apis.common import (
    ANNOTATION_IDENTIFIER,
    LABEL_PARENT_PACKAGE,
    ActivationPolicy,
    Condition,
    ConditionStatus,
    ConditionType,
    DesiredState,
)
from pkgplane.apis.interfaces import Package, PackageRevision
from pkgplane.apis.registry import PackageKind
from pkgplane.revision.certificates import CertificateNamer, assign_package_secrets
from pkgplane.revision.reconciler import is_ready
from pkgplane.xpkg.identity import revision_name

REASON_ACTIVE = "ActivePackageRevision"
REASON_TRANSITIONING = "TransitioningPackageRevision"
REASON_NO_ACTIVE = "NoActivePackageRevision"
REASON_UNKNOWN_HEALTH = "UnknownPackageRevisionHealth"

# Package fields copied onto the revision it targets.
PROPAGATED_FIELDS = (
    "package_pull_secrets",
    "package_pull_policy",
    "controller_config_ref",
    "ignore_crossplane_constraints",
    "skip_dependency_resolution",
    "common_labels",
)


@dataclass
class RevisionPlan:
    """Writes for one reconciliation, plus the resulting package status."""

    target: str
    creates: list[PackageRevision] = field(default_factory=list)
    updates: list[PackageRevision] = field(default_factory=list)
    deletes: list[PackageRevision] = field(default_factory=list)
    current_revision: str = ""
    current_identifier: str = ""
    healthy: Condition | None = None
    installed: Condition | None = None
    waiting: bool = False

    @property
    def empty(self) -> bool:
        return not (self.creates or self.updates or self.deletes)

    def apply_status(self, package: Package) -> None:
        package.current_revision = self.current_revision
        package.current_identifier = self.current_identifier
        package.set_conditions(*[c for c in (self.healthy, self.installed) if c is not None])


def identifier_of(revision: PackageRevision) -> str:
    return revision.metadata.annotations.get(ANNOTATION_IDENTIFIER) or revision.source


def _new_revision(
    kind: PackageKind,
    package: Package,
    name: str,
    identifier: str,
    number: int,
) -> PackageRevision:
    revision = kind.new_revision(name, package.source, number)
    revision.metadata.labels[LABEL_PARENT_PACKAGE] = package.name
    revision.metadata.annotations[ANNOTATION_IDENTIFIER] = identifier
    revision.metadata.owner_references.append(package.owner_reference(controller=True))
    revision.desired_state = DesiredState.INACTIVE
    return revision


def _propagate(package: Package, revision: PackageRevision, namer: CertificateNamer) -> bool:
    """Copy package configuration onto ``revision``; report whether it changed."""
    before = revision.model_dump()  # type: ignore[attr-defined]
    for name in PROPAGATED_FIELDS:
        value = getattr(package, name)
        setattr(revision, name, copy.deepcopy(value))
    assign_package_secrets(namer, package, revision)
    return revision.model_dump() != before  # type: ignore[attr-defined]


def _set_state(
    revision: PackageRevision,
    state: DesiredState,
    changed: dict[str, PackageRevision],
) -> None:
    if revision.desired_state != state:
        revision.desired_state = state
        changed[revision.name] = revision


def _activate(
    package: Package,
    target: PackageRevision | None,
    live: Sequence[PackageRevision],
    changed: dict[str, PackageRevision],
) -> None:
    if package.activation_policy != ActivationPolicy.AUTOMATIC or target is None:
        return
    _set_state(target, DesiredState.ACTIVE, changed)
    # The previous active revision keeps serving until the target is ready.
    if not is_ready(target):
        return
    for revision in live:
        if revision.name != target.name:
            _set_state(revision, DesiredState.INACTIVE, changed)


def _collect_garbage(
    limit: int | None,
    target_name: str,
    live: Sequence[PackageRevision],
) -> list[PackageRevision]:
    if limit is None:
        return []
    inactive = sorted(
        (
            r
            for r in live
            if r.desired_state == DesiredState.INACTIVE and r.name != target_name
        ),
        key=lambda r: r.revision,
    )
    excess = len(inactive) - limit
    return inactive[:excess] if excess > 0 else []


def _status(
    package: Package,
    plan: RevisionPlan,
    live: Sequence[PackageRevision],
) -> None:
    active = [r for r in live if r.desired_state == DesiredState.ACTIVE]
    if not active:
        plan.current_revision = package.current_revision
        plan.current_identifier = package.current_identifier
        plan.healthy = Condition(
            type=ConditionType.HEALTHY,
            status=ConditionStatus.UNKNOWN,
            reason=REASON_NO_ACTIVE,
            message="no revision is active",
        )
        plan.installed = Condition(
            type=ConditionType.INSTALLED,
            status=ConditionStatus.FALSE,
            reason=REASON_NO_ACTIVE,
        )
        return

    current = max(active, key=lambda r: r.revision)
    plan.current_revision = current.name
    plan.current_identifier = identifier_of(current)

    health = current.get_condition(ConditionType.HEALTHY)
    plan.healthy = Condition(
        type=ConditionType.HEALTHY,
        status=health.status,
        reason=health.reason or REASON_UNKNOWN_HEALTH,
        message=health.message,
    )
    if current.name == plan.target:
        plan.installed = Condition(
            type=ConditionType.INSTALLED, status=ConditionStatus.TRUE, reason=REASON_ACTIVE
        )
    else:
        plan.installed = Condition(
            type=ConditionType.INSTALLED,
            status=ConditionStatus.FALSE,
            reason=REASON_TRANSITIONING,
            message=f"revision {plan.target} is not active",
        )


def plan_revisions(
    kind: PackageKind,
    package: Package,
    revisions: Sequence[PackageRevision],
    identifier: str,
    namer: CertificateNamer,
) -> RevisionPlan:
    """Plan the revision writes that converge ``package`` on ``identifier``.

    ``revisions`` are owned copies; the planner mutates them in place and
    returns the mutated ones in the plan.
    """
    target_name = revision_name(package.name, identifier)
    plan = RevisionPlan(target=target_name)
    changed: dict[str, PackageRevision] = {}

    live = [r for r in revisions if not r.deleting]
    target = next((r for r in revisions if r.name == target_name), None)

    if target is None:
        number = max((r.revision for r in revisions), default=0) + 1
        target = _new_revision(kind, package, target_name, identifier, number)
        _propagate(package, target, namer)
        plan.creates.append(target.model_copy(deep=True))  # type: ignore[attr-defined]
        live.append(target)
    elif target.deleting:
        # Its name frees up once the deletion finishes.
        plan.waiting = True
        target = None
    elif _propagate(package, target, namer):
        changed[target.name] = target

    _activate(package, target, live, changed)

    plan.deletes = _collect_garbage(package.revision_history_limit, target_name, live)
    deleted = {r.name for r in plan.deletes}
    plan.updates = [r for name, r in changed.items() if name not in deleted]

    _status(package, plan, [r for r in live if r.name not in deleted])
    return plan
