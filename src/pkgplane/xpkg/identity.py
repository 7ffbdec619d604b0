"""
Package source references and the names derived from them.

A source is an OCI-style image reference: ``[registry/]path[:tag][@digest]``.
Revisions are named after the identifier they were built from so that the
same identifier always maps to the same revision name.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

from pkgplane.core.errors import ContentInvalidError

DIGEST_PREFIX = "sha256:"

# Kubernetes-style object names are DNS labels.
MAX_NAME_LENGTH = 63
NAME_HASH_LENGTH = 12

_INVALID_LABEL_CHARS = re.compile(r"[^a-z0-9-]+")


@dataclass(frozen=True)
class ImageRef:
    """A parsed package source."""

    registry: str
    path: str
    tag: str | None = None
    digest: str | None = None

    @property
    def repository(self) -> str:
        """Source without tag or digest; dependencies match on this."""
        return f"{self.registry}/{self.path}" if self.registry else self.path

    @property
    def version(self) -> str | None:
        return self.digest or self.tag

    def with_tag(self, tag: str) -> str:
        return f"{self.repository}:{tag}"


def parse_source(source: str) -> ImageRef:
    """Split an image reference into registry, path, tag and digest."""
    ref = source.strip()
    if not ref:
        raise ContentInvalidError("Package source is empty")

    digest = None
    if "@" in ref:
        ref, digest = ref.split("@", 1)
        if not digest.startswith(DIGEST_PREFIX):
            raise ContentInvalidError(
                f"Unsupported digest in package source: {digest}",
                details={"source": source},
            )

    tag = None
    last_slash = ref.rfind("/")
    last_colon = ref.rfind(":")
    if last_colon > last_slash:
        ref, tag = ref[:last_colon], ref[last_colon + 1 :]

    registry = ""
    first, _, rest = ref.partition("/")
    if rest and ("." in first or ":" in first or first == "localhost"):
        registry, ref = first, rest

    if not ref:
        raise ContentInvalidError("Package source has no repository", details={"source": source})
    return ImageRef(registry=registry, path=ref, tag=tag, digest=digest)


def same_repository(a: str, b: str) -> bool:
    return parse_source(a).repository == parse_source(b).repository


def identifier_for(source: str, digest: str | None) -> str:
    """Stable identifier of a source: its resolved digest when known."""
    if digest:
        return digest
    ref = parse_source(source)
    return ref.digest or source


def to_dns_label(value: str, limit: int = MAX_NAME_LENGTH) -> str:
    label = _INVALID_LABEL_CHARS.sub("-", value.lower()).strip("-")
    return label[:limit].rstrip("-")


def _short_hash(identifier: str) -> str:
    if identifier.startswith(DIGEST_PREFIX):
        hexpart = identifier[len(DIGEST_PREFIX) :]
        if len(hexpart) >= NAME_HASH_LENGTH:
            return hexpart[:NAME_HASH_LENGTH].lower()
    return hashlib.sha256(identifier.encode("utf-8")).hexdigest()[:NAME_HASH_LENGTH]


def revision_name(package_name: str, identifier: str) -> str:
    """Name of the revision a package creates for ``identifier``.

    The package name is shortened, never the hash, so distinct identifiers
    keep distinct names.
    """
    suffix = _short_hash(identifier)
    prefix = package_name[: MAX_NAME_LENGTH - NAME_HASH_LENGTH - 1].rstrip("-")
    return f"{prefix}-{suffix}"


def package_name_for(source: str) -> str:
    """Name given to a package installed on demand from ``source``."""
    return to_dns_label(parse_source(source).path.replace("/", "-"))
