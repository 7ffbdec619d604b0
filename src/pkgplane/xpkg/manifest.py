"""
Package content model.

A package is a stream of YAML documents: exactly one metadata document
(``meta.pkg.crossplane.io``) describing the package, its controller and its
dependencies, followed by the objects the package installs.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from pkgplane.apis.common import APIModel, PolicyRule, TypedReference

META_API_GROUP = "meta.pkg.crossplane.io"

# Kind of each installable object a package kind may carry.
CRD_KIND = "CustomResourceDefinition"
XRD_KIND = "CompositeResourceDefinition"
COMPOSITION_KIND = "Composition"
MUTATING_WEBHOOK_KIND = "MutatingWebhookConfiguration"
VALIDATING_WEBHOOK_KIND = "ValidatingWebhookConfiguration"

WEBHOOK_KINDS = frozenset({MUTATING_WEBHOOK_KIND, VALIDATING_WEBHOOK_KIND})

ALLOWED_OBJECT_KINDS: dict[str, frozenset[str]] = {
    "Provider": frozenset({CRD_KIND, MUTATING_WEBHOOK_KIND, VALIDATING_WEBHOOK_KIND}),
    "Configuration": frozenset({XRD_KIND, COMPOSITION_KIND}),
    "Function": frozenset({CRD_KIND}),
}


class CrossplaneConstraints(APIModel):
    """Platform versions a package supports."""

    version: str = ""


class ControllerSpec(APIModel):
    image: str | None = None
    permission_requests: list[PolicyRule] = Field(default_factory=list)
    external_secret_stores: bool = False


class Dependency(APIModel):
    """One entry of ``dependsOn``: a package source and a version constraint."""

    provider: str | None = None
    configuration: str | None = None
    function: str | None = None
    version: str = "*"

    @model_validator(mode="after")
    def _exactly_one_source(self) -> Dependency:
        sources = [s for s in (self.provider, self.configuration, self.function) if s]
        if len(sources) != 1:
            raise ValueError("a dependency names exactly one provider, configuration or function")
        return self

    @property
    def package(self) -> str:
        return self.provider or self.configuration or self.function or ""

    @property
    def kind(self) -> str:
        if self.provider:
            return "Provider"
        if self.configuration:
            return "Configuration"
        return "Function"


class MetaSpec(APIModel):
    crossplane: CrossplaneConstraints | None = None
    controller: ControllerSpec = Field(default_factory=ControllerSpec)
    depends_on: list[Dependency] = Field(default_factory=list)


class MetaObjectMeta(APIModel):
    name: str
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class PackageMeta(APIModel):
    """The package's own metadata document."""

    api_version: str
    kind: str
    metadata: MetaObjectMeta
    spec: MetaSpec = Field(default_factory=MetaSpec)


class PackageObject(APIModel):
    """An object a package installs, kept as its raw document."""

    api_version: str
    kind: str
    name: str
    body: dict[str, Any] = Field(default_factory=dict)

    @property
    def reference(self) -> TypedReference:
        return TypedReference(api_version=self.api_version, kind=self.kind, name=self.name)

    @property
    def versions(self) -> frozenset[str]:
        """Served schema versions, for kinds that declare them."""
        spec = self.body.get("spec") or {}
        return frozenset(
            str(v["name"]) for v in spec.get("versions") or [] if isinstance(v, dict) and "name" in v
        )

    @property
    def uses_conversion_webhook(self) -> bool:
        conversion = (self.body.get("spec") or {}).get("conversion") or {}
        return conversion.get("strategy") == "Webhook"


class PackageContent(APIModel):
    """Parsed contents of one package image."""

    meta: PackageMeta
    objects: list[PackageObject] = Field(default_factory=list)

    @property
    def kind(self) -> str:
        return self.meta.kind

    @property
    def dependencies(self) -> list[Dependency]:
        return self.meta.spec.depends_on

    @property
    def platform_constraint(self) -> str:
        return self.meta.spec.crossplane.version if self.meta.spec.crossplane else ""

    @property
    def permission_requests(self) -> list[PolicyRule]:
        return self.meta.spec.controller.permission_requests

    @property
    def labels(self) -> dict[str, str]:
        return self.meta.metadata.labels

    @property
    def needs_webhook_tls(self) -> bool:
        return any(
            obj.kind in WEBHOOK_KINDS or obj.uses_conversion_webhook for obj in self.objects
        )

    @property
    def needs_ess_tls(self) -> bool:
        return self.meta.spec.controller.external_secret_stores
