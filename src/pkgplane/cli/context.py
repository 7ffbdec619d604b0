"""Store and fetcher construction shared by CLI commands."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from pkgplane.config import Settings
from pkgplane.core.errors import ConfigurationError
from pkgplane.store.sql import SQLObjectStore
from pkgplane.xpkg.fetcher import DirectoryFetcher


@asynccontextmanager
async def open_store(settings: Settings) -> AsyncIterator[SQLObjectStore]:
    """Open the configured database, creating the schema on first use."""
    store = SQLObjectStore.from_settings(settings)
    try:
        await store.create_schema()
        yield store
    finally:
        await store.close()


def open_fetcher(settings: Settings) -> DirectoryFetcher:
    fetcher = DirectoryFetcher(settings.package_cache_dir)
    if not fetcher.root.is_dir():
        raise ConfigurationError(
            f"Package directory {fetcher.root} does not exist",
            details={"package_cache_dir": settings.package_cache_dir},
        )
    return fetcher
