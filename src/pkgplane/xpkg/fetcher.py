"""
Package content fetchers.

Fetchers turn a package source into parsed :class:`PackageContent` and
resolve the digest that identifies it. Pulling images from a registry is
out of scope; :class:`DirectoryFetcher` serves packages already unpacked on
disk and :class:`StaticFetcher` serves content registered in memory.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Protocol, Sequence

import structlog

from pkgplane.apis.common import LocalObjectReference, PullPolicy
from pkgplane.core.errors import FetchError
from pkgplane.xpkg.identity import DIGEST_PREFIX, ImageRef, parse_source
from pkgplane.xpkg.manifest import PackageContent
from pkgplane.xpkg.parser import parse_package

logger = structlog.get_logger()

PACKAGE_FILE_SUFFIX = ".yaml"


class ContentFetcher(Protocol):
    """Interface the reconcilers use to read package content."""

    async def resolve_digest(
        self,
        source: str,
        pull_policy: PullPolicy | None = None,
        pull_secrets: Sequence[LocalObjectReference] = (),
    ) -> str | None:
        """Digest identifying ``source``, or ``None`` when it cannot be resolved."""
        ...

    async def fetch(
        self,
        source: str,
        pull_policy: PullPolicy | None = None,
        pull_secrets: Sequence[LocalObjectReference] = (),
    ) -> PackageContent:
        """Parsed content of ``source``.

        Raises:
            ContentInvalidError: if the content is malformed.
            FetchError: if the content cannot be retrieved.
        """
        ...

    async def tags(self, repository: str) -> list[str]:
        """Tags available for ``repository``."""
        ...


def digest_of(data: bytes) -> str:
    return DIGEST_PREFIX + hashlib.sha256(data).hexdigest()


class DirectoryFetcher:
    """Serve packages from ``<root>/<repository>/<tag>.yaml`` files.

    The digest of a package is the sha256 of its file, so a source pinned by
    digest resolves to whichever tag file has that content.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _repository_dir(self, ref: ImageRef) -> Path:
        return self.root / ref.repository

    def _locate(self, source: str) -> Path:
        ref = parse_source(source)
        repo_dir = self._repository_dir(ref)
        if ref.digest:
            for path in sorted(repo_dir.glob(f"*{PACKAGE_FILE_SUFFIX}")):
                if digest_of(path.read_bytes()) == ref.digest:
                    return path
            raise FetchError(f"No package with digest {ref.digest}", details={"source": source})
        path = repo_dir / f"{ref.tag or 'latest'}{PACKAGE_FILE_SUFFIX}"
        if not path.is_file():
            raise FetchError(f"Package {source} not found", details={"path": str(path)})
        return path

    async def resolve_digest(
        self,
        source: str,
        pull_policy: PullPolicy | None = None,
        pull_secrets: Sequence[LocalObjectReference] = (),
    ) -> str | None:
        try:
            return digest_of(self._locate(source).read_bytes())
        except FetchError:
            return None

    async def fetch(
        self,
        source: str,
        pull_policy: PullPolicy | None = None,
        pull_secrets: Sequence[LocalObjectReference] = (),
    ) -> PackageContent:
        path = self._locate(source)
        logger.debug("package_read", source=source, path=str(path))
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise FetchError(f"Cannot read {path}: {exc}", details={"source": source}) from exc
        return parse_package(text)

    async def tags(self, repository: str) -> list[str]:
        repo_dir = self.root / repository
        if not repo_dir.is_dir():
            return []
        return sorted(p.stem for p in repo_dir.glob(f"*{PACKAGE_FILE_SUFFIX}"))


class StaticFetcher:
    """In-memory fetcher keyed by source string."""

    def __init__(self) -> None:
        self._content: dict[str, PackageContent | Exception] = {}
        self._digests: dict[str, str] = {}
        self.fetches: list[str] = []

    def add(
        self,
        source: str,
        content: PackageContent | str,
        *,
        digest: str | None = None,
    ) -> None:
        """Register ``content`` (parsed, or a YAML stream) under ``source``."""
        if isinstance(content, str):
            raw = content
            content = parse_package(content)
            digest = digest or digest_of(raw.encode("utf-8"))
        self._content[source] = content
        if digest:
            self._digests[source] = digest
            self._content[f"{parse_source(source).repository}@{digest}"] = content

    def fail(self, source: str, error: Exception) -> None:
        """Make fetching ``source`` raise ``error``."""
        self._content[source] = error

    async def resolve_digest(
        self,
        source: str,
        pull_policy: PullPolicy | None = None,
        pull_secrets: Sequence[LocalObjectReference] = (),
    ) -> str | None:
        if parse_source(source).digest:
            return parse_source(source).digest
        return self._digests.get(source)

    async def fetch(
        self,
        source: str,
        pull_policy: PullPolicy | None = None,
        pull_secrets: Sequence[LocalObjectReference] = (),
    ) -> PackageContent:
        self.fetches.append(source)
        content = self._content.get(source)
        if content is None:
            raise FetchError(f"Package {source} not found", details={"source": source})
        if isinstance(content, Exception):
            raise content
        return content

    async def tags(self, repository: str) -> list[str]:
        found = []
        for source in self._content:
            ref = parse_source(source)
            if ref.repository == repository and ref.tag and not ref.digest:
                found.append(ref.tag)
        return sorted(found)
