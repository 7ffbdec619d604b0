"""
Object store contract.

The store persists API objects, answers label-selector list queries, and
publishes a change event for every successful write. Every object carries a
resource version; an update whose version is stale is rejected with
``ConflictError`` and the caller restarts from a fresh read.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, TypeVar

from pkgplane.apis.common import Object

T = TypeVar("T", bound=Object)


class WatchEventType(StrEnum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True, slots=True)
class WatchEvent:
    type: WatchEventType
    kind: str
    name: str
    labels: Mapping[str, str]


class ObjectStore(Protocol):
    """Minimal storage interface consumed by the reconcilers."""

    async def create(self, obj: T) -> T:
        ...

    async def get(self, kind: type[T], name: str) -> T:
        ...

    async def list(self, kind: type[T], labels: Mapping[str, str] | None = None) -> list[T]:
        ...

    async def update(self, obj: T) -> T:
        ...

    async def delete(self, obj: Object) -> None:
        ...

    def watch(self) -> AsyncIterator[WatchEvent]:
        ...


def matches(labels: Mapping[str, str], selector: Mapping[str, str] | None) -> bool:
    """Equality-based label selector match."""
    if not selector:
        return True
    return all(labels.get(k) == v for k, v in selector.items())


class Broadcaster:
    """Fans out watch events to every active subscriber."""

    def __init__(self) -> None:
        self._subscribers: set[asyncio.Queue[WatchEvent]] = set()

    def publish(self, event: WatchEvent) -> None:
        for queue in self._subscribers:
            queue.put_nowait(event)

    async def subscribe(self) -> AsyncIterator[WatchEvent]:
        queue: asyncio.Queue[WatchEvent] = asyncio.Queue()
        self._subscribers.add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)
