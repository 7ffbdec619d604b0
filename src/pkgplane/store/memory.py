from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Mapping

import structlog

from pkgplane.apis.common import Object, utcnow
from pkgplane.core.errors import AlreadyExistsError, ConflictError, NotFoundError
from pkgplane.store.base import Broadcaster, T, WatchEvent, WatchEventType, matches

logger = structlog.get_logger()


class MemoryObjectStore:
    """Dictionary-backed object store for tests and local development.

    Stored objects are copies; callers never share state with the store.
    """

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], Object] = {}
        self._version = 0
        self._lock = asyncio.Lock()
        self._events = Broadcaster()
        self.writes = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _publish(self, event_type: WatchEventType, obj: Object) -> None:
        self.writes += 1
        self._events.publish(
            WatchEvent(
                type=event_type,
                kind=obj.kind,
                name=obj.name,
                labels=dict(obj.metadata.labels),
            )
        )

    async def create(self, obj: T) -> T:
        async with self._lock:
            key = (obj.kind, obj.name)
            if key in self._objects:
                raise AlreadyExistsError(
                    f"{obj.kind} {obj.name} already exists",
                    details={"kind": obj.kind, "name": obj.name},
                )
            stored = obj.model_copy(deep=True)
            stored.metadata.uid = stored.metadata.uid or uuid.uuid4().hex
            stored.metadata.resource_version = self._next_version()
            stored.metadata.generation = 1
            stored.metadata.creation_timestamp = utcnow()
            stored.metadata.deletion_timestamp = None
            self._objects[key] = stored
            self._publish(WatchEventType.ADDED, stored)
            logger.debug("object_created", kind=obj.kind, name=obj.name)
            return stored.model_copy(deep=True)

    async def get(self, kind: type[T], name: str) -> T:
        stored = self._objects.get((kind.kind_name(), name))
        if stored is None:
            raise NotFoundError(
                f"{kind.kind_name()} {name} not found",
                details={"kind": kind.kind_name(), "name": name},
            )
        return stored.model_copy(deep=True)  # type: ignore[return-value]

    async def list(self, kind: type[T], labels: Mapping[str, str] | None = None) -> list[T]:
        kind_name = kind.kind_name()
        return [
            obj.model_copy(deep=True)  # type: ignore[misc]
            for (k, _), obj in sorted(self._objects.items())
            if k == kind_name and matches(obj.metadata.labels, labels)
        ]

    async def update(self, obj: T) -> T:
        async with self._lock:
            key = (obj.kind, obj.name)
            current = self._objects.get(key)
            if current is None:
                raise NotFoundError(
                    f"{obj.kind} {obj.name} not found",
                    details={"kind": obj.kind, "name": obj.name},
                )
            if current.metadata.resource_version != obj.metadata.resource_version:
                raise ConflictError(
                    f"{obj.kind} {obj.name} was modified concurrently",
                    details={
                        "kind": obj.kind,
                        "name": obj.name,
                        "expected": obj.metadata.resource_version,
                        "actual": current.metadata.resource_version,
                    },
                )
            obj.validate_update(current)

            stored = obj.model_copy(deep=True)
            # Server-owned metadata is never taken from the caller.
            stored.metadata.uid = current.metadata.uid
            stored.metadata.creation_timestamp = current.metadata.creation_timestamp
            stored.metadata.deletion_timestamp = current.metadata.deletion_timestamp
            stored.metadata.generation = current.metadata.generation
            if _spec_of(stored) != _spec_of(current):
                stored.metadata.generation += 1
            stored.metadata.resource_version = self._next_version()

            if stored.deleting and not stored.metadata.finalizers:
                del self._objects[key]
                self._publish(WatchEventType.DELETED, stored)
                logger.debug("object_finalized", kind=obj.kind, name=obj.name)
            else:
                self._objects[key] = stored
                self._publish(WatchEventType.MODIFIED, stored)
            return stored.model_copy(deep=True)

    async def delete(self, obj: Object) -> None:
        async with self._lock:
            key = (obj.kind, obj.name)
            current = self._objects.get(key)
            if current is None:
                raise NotFoundError(
                    f"{obj.kind} {obj.name} not found",
                    details={"kind": obj.kind, "name": obj.name},
                )
            if current.metadata.finalizers:
                if not current.deleting:
                    current.metadata.deletion_timestamp = utcnow()
                    current.metadata.resource_version = self._next_version()
                    self._publish(WatchEventType.MODIFIED, current)
                return
            del self._objects[key]
            self._publish(WatchEventType.DELETED, current)
            logger.debug("object_deleted", kind=obj.kind, name=obj.name)

    def watch(self) -> AsyncIterator[WatchEvent]:
        return self._events.subscribe()


def _spec_of(obj: Object) -> object:
    spec = getattr(obj, "spec", None)
    return spec.model_dump() if spec is not None else None
