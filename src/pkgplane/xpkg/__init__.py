"""Package content: manifests, parsing, source references and fetchers."""

from pkgplane.xpkg.fetcher import ContentFetcher, DirectoryFetcher, StaticFetcher, digest_of
from pkgplane.xpkg.identity import (
    ImageRef,
    identifier_for,
    package_name_for,
    parse_source,
    revision_name,
    same_repository,
    to_dns_label,
)
from pkgplane.xpkg.manifest import (
    ControllerSpec,
    Dependency,
    PackageContent,
    PackageMeta,
    PackageObject,
)
from pkgplane.xpkg.parser import parse_package

__all__ = [
    "ContentFetcher",
    "ControllerSpec",
    "Dependency",
    "DirectoryFetcher",
    "ImageRef",
    "PackageContent",
    "PackageMeta",
    "PackageObject",
    "StaticFetcher",
    "digest_of",
    "identifier_for",
    "package_name_for",
    "parse_package",
    "parse_source",
    "revision_name",
    "same_repository",
    "to_dns_label",
]
