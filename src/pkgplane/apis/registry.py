"""Registry tying each package kind to its revision and revision list kinds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from pkgplane.apis.common import Object
from pkgplane.apis.interfaces import Package, PackageRevision, PackageRevisionList
from pkgplane.apis.packages import Configuration, Function, Provider
from pkgplane.apis.revisions import (
    ConfigurationRevision,
    ConfigurationRevisionList,
    FunctionRevision,
    FunctionRevisionList,
    ProviderRevision,
    ProviderRevisionList,
)


@dataclass(frozen=True)
class PackageKind:
    """The concrete types a reconciler is parameterised with."""

    package: type[Object]
    revision: type[Object]
    revision_list: type[Any]
    has_controller: bool = True

    @property
    def name(self) -> str:
        return self.package.kind_name()

    @property
    def revision_kind(self) -> str:
        return self.revision.kind_name()

    def new_package(self, name: str, source: str) -> Package:
        return self.package.model_validate(  # type: ignore[return-value]
            {"metadata": {"name": name}, "spec": {"package": source}}
        )

    def new_revision(self, name: str, image: str, revision: int) -> PackageRevision:
        return self.revision.model_validate(  # type: ignore[return-value]
            {
                "metadata": {"name": name},
                "spec": {"image": image, "revision": revision},
            }
        )

    def revision_list_of(self, items: List[Object]) -> PackageRevisionList:
        return self.revision_list(items=items)


PROVIDER = PackageKind(Provider, ProviderRevision, ProviderRevisionList)
CONFIGURATION = PackageKind(
    Configuration, ConfigurationRevision, ConfigurationRevisionList, has_controller=False
)
FUNCTION = PackageKind(Function, FunctionRevision, FunctionRevisionList)

_KINDS: Dict[str, PackageKind] = {k.name: k for k in (PROVIDER, CONFIGURATION, FUNCTION)}
_BY_REVISION: Dict[str, PackageKind] = {k.revision_kind: k for k in _KINDS.values()}


def package_kinds() -> List[PackageKind]:
    """List every registered package kind."""
    return list(_KINDS.values())


def get_kind(name: str) -> PackageKind:
    """Look up a package kind by package or revision kind name."""
    kind = _KINDS.get(name) or _BY_REVISION.get(name)
    if kind is None:
        raise KeyError(f"Package kind '{name}' is not registered")
    return kind
