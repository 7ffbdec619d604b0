"""
CLI command for listing packages and revisions.

Commands:
    pkgplane get packages             - Packages of every kind
    pkgplane get revisions            - Revisions of every kind
    pkgplane get revisions --json     - Output as JSON
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from pkgplane.apis.common import ConditionType
from pkgplane.apis.registry import package_kinds
from pkgplane.apis.revisions import revision_columns
from pkgplane.cli.context import open_store
from pkgplane.cli.ux import console, print_table, styled_status
from pkgplane.config import Settings, get_settings
from pkgplane.store.base import ObjectStore

PACKAGE_COLUMNS = ["NAME", "KIND", "INSTALLED", "HEALTHY", "PACKAGE", "CURRENT"]
REVISION_COLUMNS = [
    "NAME",
    "KIND",
    "HEALTHY",
    "REVISION",
    "IMAGE",
    "STATE",
    "DEP-FOUND",
    "DEP-INSTALLED",
]


async def package_rows(store: ObjectStore) -> list[dict[str, str]]:
    rows = []
    for kind in package_kinds():
        for package in await store.list(kind.package):
            rows.append(
                {
                    "NAME": package.name,
                    "KIND": package.kind,
                    "INSTALLED": package.get_condition(ConditionType.INSTALLED).status.value,  # type: ignore[attr-defined]
                    "HEALTHY": package.get_condition(ConditionType.HEALTHY).status.value,  # type: ignore[attr-defined]
                    "PACKAGE": package.source,  # type: ignore[attr-defined]
                    "CURRENT": package.current_revision,  # type: ignore[attr-defined]
                }
            )
    return rows


async def revision_rows(store: ObjectStore) -> list[dict[str, str]]:
    rows = []
    for kind in package_kinds():
        for revision in await store.list(kind.revision):
            row = revision_columns(revision)  # type: ignore[arg-type]
            row["KIND"] = revision.kind
            rows.append(row)
    return rows


async def _get(resource: str, settings: Settings) -> list[dict[str, str]]:
    async with open_store(settings) as store:
        if resource == "packages":
            return await package_rows(store)
        return await revision_rows(store)


def _render(resource: str, rows: list[dict[str, Any]]) -> None:
    columns = PACKAGE_COLUMNS if resource == "packages" else REVISION_COLUMNS
    styled = {"INSTALLED", "HEALTHY"}
    print_table(
        resource.capitalize(),
        columns,
        [
            [styled_status(row[c]) if c in styled else str(row[c]) for c in columns]
            for row in rows
        ],
    )


def get_command(
    resource: str,
    output_format: str = "table",
    settings: Settings | None = None,
) -> int:
    """List packages or revisions; returns an exit code."""
    rows = asyncio.run(_get(resource, settings or get_settings()))
    if output_format == "json":
        print(json.dumps(rows, indent=2))
        return 0
    if not rows:
        console.print(f"[muted]No {resource} found[/muted]")
        return 0
    _render(resource, rows)
    return 0
