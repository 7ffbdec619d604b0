"""
Establishment of the objects a revision installs.

Objects (extension schemas, compositions, webhook configurations) may be
owned by several revisions of the same package family at once. Establishing
merges the served versions monotonically; releasing drops one owner and
deletes the object once no owner remains.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Protocol, Sequence

import structlog

from pkgplane.apis.common import TypedReference
from pkgplane.apis.interfaces import PackageRevision
from pkgplane.core.errors import ContentInvalidError
from pkgplane.xpkg.manifest import PackageObject

logger = structlog.get_logger()

Key = tuple[str, str, str]


def owner_key(revision: PackageRevision) -> str:
    return f"{revision.kind}/{revision.name}"


class ObjectEstablisher(Protocol):
    async def establish(
        self,
        revision: PackageRevision,
        objects: Sequence[PackageObject],
        *,
        family: str,
        control: bool,
    ) -> list[TypedReference]:
        """Install ``objects`` for ``revision`` and return references to them.

        Raises:
            ContentInvalidError: if an object is already owned by another
                package family. Nothing is changed in that case.
        """
        ...

    async def release(
        self, revision: PackageRevision, refs: Sequence[TypedReference]
    ) -> list[TypedReference]:
        """Drop ``revision``'s ownership of ``refs``; return the ones deleted."""
        ...


@dataclass
class InstalledObject:
    ref: TypedReference
    family: str
    versions: set[str] = field(default_factory=set)
    owners: set[str] = field(default_factory=set)
    controller: str | None = None


class MemoryEstablisher:
    """Shared-ownership ledger of installed objects."""

    def __init__(self) -> None:
        self.objects: dict[Key, InstalledObject] = {}
        self._lock = asyncio.Lock()

    def get(self, ref: TypedReference) -> InstalledObject | None:
        return self.objects.get(ref.key)

    async def establish(
        self,
        revision: PackageRevision,
        objects: Sequence[PackageObject],
        *,
        family: str,
        control: bool,
    ) -> list[TypedReference]:
        owner = owner_key(revision)
        async with self._lock:
            for obj in objects:
                existing = self.objects.get(obj.reference.key)
                if existing is not None and existing.family != family:
                    raise ContentInvalidError(
                        f"{obj.kind} {obj.name} is owned by package family {existing.family}",
                        details={"revision": revision.name, "family": family},
                    )

            # Keep uids the revision already recorded so a new ledger does not rename objects.
            recorded = {ref.key: ref.uid for ref in revision.object_refs if ref.uid}
            refs = []
            for obj in objects:
                installed = self.objects.get(obj.reference.key)
                if installed is None:
                    uid = recorded.get(obj.reference.key) or uuid.uuid4().hex
                    ref = obj.reference.model_copy(update={"uid": uid})
                    installed = InstalledObject(ref=ref, family=family)
                    self.objects[ref.key] = installed
                    logger.debug("object_established", kind=obj.kind, name=obj.name)
                installed.versions |= obj.versions
                installed.owners.add(owner)
                if control:
                    installed.controller = owner
                elif installed.controller == owner:
                    installed.controller = None
                refs.append(installed.ref.model_copy())
            return refs

    async def release(
        self, revision: PackageRevision, refs: Sequence[TypedReference]
    ) -> list[TypedReference]:
        owner = owner_key(revision)
        deleted = []
        async with self._lock:
            for ref in refs:
                installed = self.objects.get(ref.key)
                if installed is None:
                    continue
                installed.owners.discard(owner)
                if installed.controller == owner:
                    installed.controller = None
                if not installed.owners:
                    del self.objects[ref.key]
                    deleted.append(installed.ref)
                    logger.debug("object_removed", kind=ref.kind, name=ref.name)
        return deleted
