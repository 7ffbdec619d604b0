"""
CLI command running the controllers until everything settles.
"""

from __future__ import annotations

import asyncio

import structlog

from pkgplane.cli.context import open_fetcher, open_store
from pkgplane.cli.get import package_rows
from pkgplane.cli.ux import spinner, success, warning
from pkgplane.config import Settings, get_settings
from pkgplane.manager import ControllerManager

logger = structlog.get_logger()


async def _reconcile(settings: Settings, timeout: float) -> list[dict[str, str]]:
    fetcher = open_fetcher(settings)
    async with open_store(settings) as store:
        manager = ControllerManager(store, fetcher, settings=settings)
        await manager.run_until_converged(timeout)
        return await package_rows(store)


def reconcile_command(timeout: float = 30.0, settings: Settings | None = None) -> int:
    """Reconcile every package; returns an exit code.

    Exit codes:
        0 - All packages installed and healthy
        1 - Settled, but some packages are not healthy
        13 - Controllers did not settle within ``timeout``
    """
    cfg = settings or get_settings()
    with spinner("Reconciling packages"):
        rows = asyncio.run(_reconcile(cfg, timeout))

    unhealthy = [r for r in rows if r["HEALTHY"] != "True" or r["INSTALLED"] != "True"]
    for row in rows:
        if row in unhealthy:
            warning(f"{row['KIND'].lower()}/{row['NAME']} not ready (healthy={row['HEALTHY']})")
        else:
            success(f"{row['KIND'].lower()}/{row['NAME']} {row['CURRENT']}")
    logger.info("reconcile_finished", packages=len(rows), unhealthy=len(unhealthy))
    return 1 if unhealthy else 0
