"""
Package revision kinds and their lists.

A revision is the immutable, numbered materialization of one resolved package
source. Only ``desiredState`` and status fields change after creation.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from pkgplane.apis.common import (
    APIModel,
    Condition,
    ConditionType,
    ConditionedStatus,
    ControllerConfigReference,
    ControllerReference,
    DesiredState,
    LocalObjectReference,
    Object,
    PolicyRule,
    PullPolicy,
    TypedReference,
)
from pkgplane.apis.interfaces import PackageRevision
from pkgplane.core.errors import ImmutableFieldError


class PackageRevisionSpec(APIModel):
    """Desired state of a package revision."""

    image: str
    revision: int = Field(ge=1)
    desired_state: DesiredState = DesiredState.INACTIVE
    package_pull_policy: PullPolicy | None = PullPolicy.IF_NOT_PRESENT
    package_pull_secrets: list[LocalObjectReference] = Field(default_factory=list)
    skip_dependency_resolution: bool = False
    ignore_crossplane_constraints: bool = False
    controller_config_ref: ControllerConfigReference | None = None
    webhook_tls_secret_name: str | None = Field(default=None, alias="webhookTLSSecretName")
    ess_tls_secret_name: str | None = Field(default=None, alias="essTLSSecretName")
    tls_server_secret_name: str | None = None
    tls_client_secret_name: str | None = None
    common_labels: dict[str, str] = Field(default_factory=dict)


class PackageRevisionStatus(ConditionedStatus):
    """Observed state of a package revision."""

    controller_ref: ControllerReference | None = None
    object_refs: list[TypedReference] = Field(default_factory=list)
    found_dependencies: int = Field(default=0, ge=0)
    installed_dependencies: int = Field(default=0, ge=0)
    invalid_dependencies: int = Field(default=0, ge=0)
    permission_requests: list[PolicyRule] = Field(default_factory=list)


class FunctionRevisionStatus(PackageRevisionStatus):
    endpoint: str | None = None


IMMUTABLE_SPEC_FIELDS = ("image", "revision")


class _PackageRevision(Object):
    spec: PackageRevisionSpec
    status: PackageRevisionStatus = Field(default_factory=PackageRevisionStatus)

    def validate_update(self, previous: Object) -> None:
        prev_spec = getattr(previous, "spec", None)
        if prev_spec is None:
            return
        for field in IMMUTABLE_SPEC_FIELDS:
            if getattr(prev_spec, field) != getattr(self.spec, field):
                raise ImmutableFieldError(
                    f"spec.{field} is immutable",
                    details={"revision": self.name, "field": field},
                )

    def get_condition(self, ctype: ConditionType) -> Condition:
        return self.status.get_condition(ctype)

    def set_conditions(self, *conditions: Condition) -> None:
        self.status.set_conditions(*conditions)

    def get_dependency_status(self) -> tuple[int, int, int]:
        return (
            self.status.found_dependencies,
            self.status.installed_dependencies,
            self.status.invalid_dependencies,
        )

    def set_dependency_status(self, found: int, installed: int, invalid: int) -> None:
        self.status.found_dependencies = found
        self.status.installed_dependencies = installed
        self.status.invalid_dependencies = invalid

    @property
    def object_refs(self) -> list[TypedReference]:
        return self.status.object_refs

    @object_refs.setter
    def object_refs(self, value: list[TypedReference]) -> None:
        self.status.object_refs = value

    @property
    def controller_ref(self) -> ControllerReference | None:
        return self.status.controller_ref

    @controller_ref.setter
    def controller_ref(self, value: ControllerReference | None) -> None:
        self.status.controller_ref = value

    @property
    def permission_requests(self) -> list[PolicyRule]:
        return self.status.permission_requests

    @permission_requests.setter
    def permission_requests(self, value: list[PolicyRule]) -> None:
        self.status.permission_requests = value

    @property
    def endpoint(self) -> str | None:
        return None

    @endpoint.setter
    def endpoint(self, value: str | None) -> None:
        pass

    @property
    def source(self) -> str:
        return self.spec.image

    @source.setter
    def source(self, value: str) -> None:
        self.spec.image = value

    @property
    def revision(self) -> int:
        return self.spec.revision

    @revision.setter
    def revision(self, value: int) -> None:
        self.spec.revision = value

    @property
    def desired_state(self) -> DesiredState:
        return self.spec.desired_state

    @desired_state.setter
    def desired_state(self, value: DesiredState) -> None:
        self.spec.desired_state = value

    @property
    def package_pull_secrets(self) -> list[LocalObjectReference]:
        return self.spec.package_pull_secrets

    @package_pull_secrets.setter
    def package_pull_secrets(self, value: list[LocalObjectReference]) -> None:
        self.spec.package_pull_secrets = value

    @property
    def package_pull_policy(self) -> PullPolicy | None:
        return self.spec.package_pull_policy

    @package_pull_policy.setter
    def package_pull_policy(self, value: PullPolicy | None) -> None:
        self.spec.package_pull_policy = value

    @property
    def ignore_crossplane_constraints(self) -> bool:
        return self.spec.ignore_crossplane_constraints

    @ignore_crossplane_constraints.setter
    def ignore_crossplane_constraints(self, value: bool) -> None:
        self.spec.ignore_crossplane_constraints = value

    @property
    def controller_config_ref(self) -> ControllerConfigReference | None:
        return self.spec.controller_config_ref

    @controller_config_ref.setter
    def controller_config_ref(self, value: ControllerConfigReference | None) -> None:
        self.spec.controller_config_ref = value

    @property
    def skip_dependency_resolution(self) -> bool:
        return self.spec.skip_dependency_resolution

    @skip_dependency_resolution.setter
    def skip_dependency_resolution(self, value: bool) -> None:
        self.spec.skip_dependency_resolution = value

    @property
    def common_labels(self) -> dict[str, str]:
        return self.spec.common_labels

    @common_labels.setter
    def common_labels(self, value: dict[str, str]) -> None:
        self.spec.common_labels = value

    @property
    def webhook_tls_secret_name(self) -> str | None:
        return self.spec.webhook_tls_secret_name

    @webhook_tls_secret_name.setter
    def webhook_tls_secret_name(self, value: str | None) -> None:
        self.spec.webhook_tls_secret_name = value

    @property
    def ess_tls_secret_name(self) -> str | None:
        return self.spec.ess_tls_secret_name

    @ess_tls_secret_name.setter
    def ess_tls_secret_name(self, value: str | None) -> None:
        self.spec.ess_tls_secret_name = value

    @property
    def tls_server_secret_name(self) -> str | None:
        return self.spec.tls_server_secret_name

    @tls_server_secret_name.setter
    def tls_server_secret_name(self, value: str | None) -> None:
        self.spec.tls_server_secret_name = value

    @property
    def tls_client_secret_name(self) -> str | None:
        return self.spec.tls_client_secret_name

    @tls_client_secret_name.setter
    def tls_client_secret_name(self, value: str | None) -> None:
        self.spec.tls_client_secret_name = value


class ProviderRevision(_PackageRevision):
    kind: Literal["ProviderRevision"] = "ProviderRevision"


class ConfigurationRevision(_PackageRevision):
    kind: Literal["ConfigurationRevision"] = "ConfigurationRevision"


class FunctionRevision(_PackageRevision):
    kind: Literal["FunctionRevision"] = "FunctionRevision"
    status: FunctionRevisionStatus = Field(default_factory=FunctionRevisionStatus)

    @property
    def endpoint(self) -> str | None:
        return self.status.endpoint

    @endpoint.setter
    def endpoint(self, value: str | None) -> None:
        self.status.endpoint = value


class _RevisionList(APIModel):
    items: list[Any] = Field(default_factory=list)

    def get_revisions(self) -> list[PackageRevision]:
        # Copies, so that mutating a returned revision never touches the list.
        return [item.model_copy(deep=True) for item in self.items]


class ProviderRevisionList(_RevisionList):
    items: list[ProviderRevision] = Field(default_factory=list)


class ConfigurationRevisionList(_RevisionList):
    items: list[ConfigurationRevision] = Field(default_factory=list)


class FunctionRevisionList(_RevisionList):
    items: list[FunctionRevision] = Field(default_factory=list)


def revision_columns(revision: PackageRevision) -> dict[str, str]:
    """Summary columns displayed for a revision."""
    found, installed, _ = revision.get_dependency_status()
    return {
        "NAME": revision.name,
        "HEALTHY": revision.get_condition(ConditionType.HEALTHY).status.value,
        "REVISION": str(revision.revision),
        "IMAGE": revision.source,
        "STATE": revision.desired_state.value,
        "DEP-FOUND": str(found),
        "DEP-INSTALLED": str(installed),
    }
