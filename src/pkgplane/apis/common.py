"""
Shared API types: object metadata, references and conditions.

Every record serializes to the camelCase wire schema with
``model_dump(by_alias=True)`` and accepts either spelling on load.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

API_GROUP = "pkg.crossplane.io"
API_VERSION = f"{API_GROUP}/v1"

# Key of the label carrying the owning package's name on every revision.
LABEL_PARENT_PACKAGE = "pkg.crossplane.io/package"

# Provider family label, propagated from package metadata to revisions.
LABEL_PROVIDER_FAMILY = "pkg.crossplane.io/provider-family"

# Annotation recording the identifier a revision was created from.
ANNOTATION_IDENTIFIER = "pkg.crossplane.io/identifier"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class APIModel(BaseModel):
    """Base for API records."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the persisted camelCase layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ActivationPolicy(StrEnum):
    """How a package activates its revisions."""

    AUTOMATIC = "Automatic"
    MANUAL = "Manual"


class DesiredState(StrEnum):
    """Desired state of a package revision."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


class PullPolicy(StrEnum):
    ALWAYS = "Always"
    IF_NOT_PRESENT = "IfNotPresent"
    NEVER = "Never"


class ConditionType(StrEnum):
    HEALTHY = "Healthy"
    INSTALLED = "Installed"
    DEPENDENCIES = "Dependencies"


class ConditionStatus(StrEnum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Condition(APIModel):
    """A condition that may apply to an object."""

    type: ConditionType
    status: ConditionStatus = ConditionStatus.UNKNOWN
    reason: str = ""
    message: str = ""
    last_transition_time: datetime = Field(default_factory=utcnow)

    def equal(self, other: Condition) -> bool:
        """Whether two conditions match, ignoring transition time."""
        return (
            self.type == other.type
            and self.status == other.status
            and self.reason == other.reason
            and self.message == other.message
        )

    @property
    def is_true(self) -> bool:
        return self.status == ConditionStatus.TRUE


class ConditionedStatus(APIModel):
    """Status block holding a set of conditions, at most one per type."""

    conditions: list[Condition] = Field(default_factory=list)

    def get_condition(self, ctype: ConditionType) -> Condition:
        for condition in self.conditions:
            if condition.type == ctype:
                return condition
        return Condition(type=ctype, status=ConditionStatus.UNKNOWN)

    def set_conditions(self, *conditions: Condition) -> None:
        """Set conditions, leaving unchanged ones (and their timestamps) alone."""
        for new in conditions:
            for i, existing in enumerate(self.conditions):
                if existing.type != new.type:
                    continue
                if not existing.equal(new):
                    if existing.status == new.status:
                        new = new.model_copy(
                            update={"last_transition_time": existing.last_transition_time}
                        )
                    self.conditions[i] = new
                break
            else:
                self.conditions.append(new)


class OwnerReference(APIModel):
    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = False


class ObjectMeta(APIModel):
    name: str
    uid: str = ""
    resource_version: str = ""
    generation: int = 0
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    owner_references: list[OwnerReference] = Field(default_factory=list)
    finalizers: list[str] = Field(default_factory=list)
    creation_timestamp: datetime | None = None
    deletion_timestamp: datetime | None = None


class LocalObjectReference(APIModel):
    name: str


class ControllerReference(APIModel):
    """Reference to the controller workload a revision deployed."""

    name: str


class ControllerConfigReference(APIModel):
    name: str


class TypedReference(APIModel):
    """Refers to an object by name, kind and API version."""

    api_version: str
    kind: str
    name: str
    uid: str = ""

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.api_version, self.kind, self.name)


class PolicyRule(APIModel):
    """An RBAC permission a package's controller asks for."""

    verbs: list[str] = Field(default_factory=list)
    api_groups: list[str] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)
    resource_names: list[str] = Field(default_factory=list)
    non_resource_urls: list[str] = Field(default_factory=list, alias="nonResourceURLs")


class Object(APIModel):
    """A stored API object with metadata and optimistic-concurrency token."""

    api_version: str = API_VERSION
    kind: str
    metadata: ObjectMeta

    @classmethod
    def kind_name(cls) -> str:
        return str(cls.model_fields["kind"].default)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def uid(self) -> str:
        return self.metadata.uid

    @property
    def deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def validate_update(self, previous: Object) -> None:
        """Reject updates the schema forbids; the store calls this on update."""

    def owner_reference(self, *, controller: bool = True) -> OwnerReference:
        return OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.name,
            uid=self.uid,
            controller=controller,
        )
