"""
Package and revision API types.

Data model for packages (Provider, Configuration, Function), their
revisions, and the capability interfaces reconcilers operate on.
"""

from pkgplane.apis.common import (
    ANNOTATION_IDENTIFIER,
    API_VERSION,
    LABEL_PARENT_PACKAGE,
    LABEL_PROVIDER_FAMILY,
    ActivationPolicy,
    Condition,
    ConditionStatus,
    ConditionType,
    ControllerConfigReference,
    ControllerReference,
    DesiredState,
    LocalObjectReference,
    Object,
    ObjectMeta,
    OwnerReference,
    PolicyRule,
    PullPolicy,
    TypedReference,
)
from pkgplane.apis.interfaces import Package, PackageRevision, PackageRevisionList
from pkgplane.apis.packages import (
    Configuration,
    ConfigurationSpec,
    Function,
    FunctionSpec,
    PackageSpec,
    PackageStatus,
    Provider,
    ProviderSpec,
)
from pkgplane.apis.registry import (
    CONFIGURATION,
    FUNCTION,
    PROVIDER,
    PackageKind,
    get_kind,
    package_kinds,
)
from pkgplane.apis.revisions import (
    ConfigurationRevision,
    ConfigurationRevisionList,
    FunctionRevision,
    FunctionRevisionList,
    PackageRevisionSpec,
    PackageRevisionStatus,
    ProviderRevision,
    ProviderRevisionList,
    revision_columns,
)

__all__ = [
    # Common
    "API_VERSION",
    "LABEL_PARENT_PACKAGE",
    "LABEL_PROVIDER_FAMILY",
    "ANNOTATION_IDENTIFIER",
    "ActivationPolicy",
    "DesiredState",
    "PullPolicy",
    "Condition",
    "ConditionType",
    "ConditionStatus",
    "ObjectMeta",
    "OwnerReference",
    "Object",
    "LocalObjectReference",
    "ControllerReference",
    "ControllerConfigReference",
    "TypedReference",
    "PolicyRule",
    # Interfaces
    "Package",
    "PackageRevision",
    "PackageRevisionList",
    # Packages
    "PackageSpec",
    "ProviderSpec",
    "ConfigurationSpec",
    "FunctionSpec",
    "PackageStatus",
    "Provider",
    "Configuration",
    "Function",
    # Revisions
    "PackageRevisionSpec",
    "PackageRevisionStatus",
    "ProviderRevision",
    "ConfigurationRevision",
    "FunctionRevision",
    "ProviderRevisionList",
    "ConfigurationRevisionList",
    "FunctionRevisionList",
    "revision_columns",
    # Registry
    "PackageKind",
    "PROVIDER",
    "CONFIGURATION",
    "FUNCTION",
    "get_kind",
    "package_kinds",
]
