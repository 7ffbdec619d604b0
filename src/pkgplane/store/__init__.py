"""Object stores holding packages and revisions."""

from pkgplane.store.base import Broadcaster, ObjectStore, WatchEvent, WatchEventType, matches
from pkgplane.store.memory import MemoryObjectStore
from pkgplane.store.sql import SQLObjectStore, StoredObject, create_engine

__all__ = [
    "Broadcaster",
    "MemoryObjectStore",
    "ObjectStore",
    "SQLObjectStore",
    "StoredObject",
    "WatchEvent",
    "WatchEventType",
    "create_engine",
    "matches",
]
