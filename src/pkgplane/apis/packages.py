"""
Package kinds: Provider, Configuration and Function.

A package is the operator-facing declaration of a desired installable
extension, pinned to a source image reference.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from pkgplane.apis.common import (
    APIModel,
    ActivationPolicy,
    Condition,
    ConditionType,
    ConditionedStatus,
    ControllerConfigReference,
    LocalObjectReference,
    Object,
    PullPolicy,
)


class PackageSpec(APIModel):
    """Desired state common to all package kinds."""

    package: str
    revision_activation_policy: ActivationPolicy = ActivationPolicy.AUTOMATIC
    revision_history_limit: int | None = Field(default=1, ge=0)
    package_pull_secrets: list[LocalObjectReference] = Field(default_factory=list)
    package_pull_policy: PullPolicy | None = PullPolicy.IF_NOT_PRESENT
    ignore_crossplane_constraints: bool = False
    skip_dependency_resolution: bool = False
    common_labels: dict[str, str] = Field(default_factory=dict)


class ProviderSpec(PackageSpec):
    controller_config_ref: ControllerConfigReference | None = None


class FunctionSpec(ProviderSpec):
    """Functions run a workload and are configured like providers."""


class ConfigurationSpec(PackageSpec):
    pass


class PackageStatus(ConditionedStatus):
    current_revision: str = ""
    current_identifier: str = ""


class _Package(Object):
    spec: PackageSpec
    status: PackageStatus = Field(default_factory=PackageStatus)

    @property
    def has_controller(self) -> bool:
        return True

    def get_condition(self, ctype: ConditionType) -> Condition:
        return self.status.get_condition(ctype)

    def set_conditions(self, *conditions: Condition) -> None:
        self.status.set_conditions(*conditions)

    @property
    def source(self) -> str:
        return self.spec.package

    @source.setter
    def source(self, value: str) -> None:
        self.spec.package = value

    @property
    def activation_policy(self) -> ActivationPolicy:
        return self.spec.revision_activation_policy

    @activation_policy.setter
    def activation_policy(self, value: ActivationPolicy) -> None:
        self.spec.revision_activation_policy = value

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
    def revision_history_limit(self) -> int | None:
        return self.spec.revision_history_limit

    @revision_history_limit.setter
    def revision_history_limit(self, value: int | None) -> None:
        self.spec.revision_history_limit = value

    @property
    def ignore_crossplane_constraints(self) -> bool:
        return self.spec.ignore_crossplane_constraints

    @ignore_crossplane_constraints.setter
    def ignore_crossplane_constraints(self, value: bool) -> None:
        self.spec.ignore_crossplane_constraints = value

    @property
    def controller_config_ref(self) -> ControllerConfigReference | None:
        return getattr(self.spec, "controller_config_ref", None)

    @controller_config_ref.setter
    def controller_config_ref(self, value: ControllerConfigReference | None) -> None:
        if "controller_config_ref" in type(self.spec).model_fields:
            self.spec.controller_config_ref = value  # type: ignore[attr-defined]

    @property
    def current_revision(self) -> str:
        return self.status.current_revision

    @current_revision.setter
    def current_revision(self, value: str) -> None:
        self.status.current_revision = value

    @property
    def current_identifier(self) -> str:
        return self.status.current_identifier

    @current_identifier.setter
    def current_identifier(self, value: str) -> None:
        self.status.current_identifier = value

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


class Provider(_Package):
    """A Provider installs extension schemas and runs a controller."""

    kind: Literal["Provider"] = "Provider"
    spec: ProviderSpec


class Configuration(_Package):
    """A Configuration installs compositions; it never runs a controller."""

    kind: Literal["Configuration"] = "Configuration"
    spec: ConfigurationSpec

    @property
    def has_controller(self) -> bool:
        return False


class Function(_Package):
    """A Function runs a workload that serves requests on an endpoint."""

    kind: Literal["Function"] = "Function"
    spec: FunctionSpec
