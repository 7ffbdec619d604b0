"""
Capability interfaces shared by the package and revision variants.

Reconcilers are written against these protocols only. Each concrete kind
(Provider, Configuration, Function and their revisions) satisfies them
structurally; a kind without a capability (a Configuration has no
controller) answers ``None`` and ignores assignment.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pkgplane.apis.common import (
    ActivationPolicy,
    Condition,
    ConditionType,
    ControllerConfigReference,
    ControllerReference,
    DesiredState,
    LocalObjectReference,
    ObjectMeta,
    OwnerReference,
    PolicyRule,
    PullPolicy,
    TypedReference,
)


@runtime_checkable
class Package(Protocol):
    """Interface satisfied by package kinds."""

    kind: str
    metadata: ObjectMeta

    @property
    def name(self) -> str: ...

    @property
    def deleting(self) -> bool: ...

    def get_condition(self, ctype: ConditionType) -> Condition: ...

    def set_conditions(self, *conditions: Condition) -> None: ...

    def owner_reference(self, *, controller: bool = True) -> OwnerReference: ...

    source: str
    activation_policy: ActivationPolicy
    package_pull_secrets: list[LocalObjectReference]
    package_pull_policy: PullPolicy | None
    revision_history_limit: int | None
    ignore_crossplane_constraints: bool
    controller_config_ref: ControllerConfigReference | None
    current_revision: str
    current_identifier: str
    skip_dependency_resolution: bool
    common_labels: dict[str, str]

    @property
    def has_controller(self) -> bool:
        """Whether revisions of this package may run a controller workload."""
        ...


@runtime_checkable
class PackageRevision(Protocol):
    """Interface satisfied by package revision kinds."""

    kind: str
    metadata: ObjectMeta

    @property
    def name(self) -> str: ...

    @property
    def deleting(self) -> bool: ...

    def get_condition(self, ctype: ConditionType) -> Condition: ...

    def set_conditions(self, *conditions: Condition) -> None: ...

    def owner_reference(self, *, controller: bool = True) -> OwnerReference: ...

    object_refs: list[TypedReference]
    controller_ref: ControllerReference | None
    source: str
    package_pull_secrets: list[LocalObjectReference]
    package_pull_policy: PullPolicy | None
    desired_state: DesiredState
    ignore_crossplane_constraints: bool
    controller_config_ref: ControllerConfigReference | None
    revision: int
    skip_dependency_resolution: bool
    common_labels: dict[str, str]
    permission_requests: list[PolicyRule]
    endpoint: str | None

    def get_dependency_status(self) -> tuple[int, int, int]: ...

    def set_dependency_status(self, found: int, installed: int, invalid: int) -> None: ...

    # Per-revision certificate names; see pkgplane.revision.certificates.
    webhook_tls_secret_name: str | None
    ess_tls_secret_name: str | None
    tls_server_secret_name: str | None
    tls_client_secret_name: str | None


@runtime_checkable
class PackageRevisionList(Protocol):
    """A homogeneous view over one kind's revision list."""

    def get_revisions(self) -> list[PackageRevision]:
        """Return every item as an owned copy behind the revision interface."""
        ...
