"""
CLI command for applying package manifests to the store.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pydantic
import yaml

from pkgplane.apis.common import API_GROUP, Object
from pkgplane.apis.registry import get_kind, package_kinds
from pkgplane.cli.context import open_store
from pkgplane.cli.ux import console, success
from pkgplane.config import Settings, get_settings
from pkgplane.core.errors import NotFoundError, ValidationError
from pkgplane.store.base import ObjectStore


def load_packages(path: Path) -> list[Object]:
    """Read every package document in ``path``.

    Raises:
        ValidationError: if the file is missing or a document is not a valid
            Provider, Configuration or Function.
    """
    if not path.is_file():
        raise ValidationError(f"File not found: {path}", details={"path": str(path)})
    try:
        docs = [d for d in yaml.safe_load_all(path.read_text(encoding="utf-8")) if d]
    except yaml.YAMLError as exc:
        raise ValidationError(f"{path} is not valid YAML: {exc}") from exc

    known = {kind.name for kind in package_kinds()}
    packages = []
    for doc in docs:
        kind_name = doc.get("kind") if isinstance(doc, dict) else None
        group = str(doc.get("apiVersion", "")).split("/", 1)[0] if isinstance(doc, dict) else ""
        if kind_name not in known or group != API_GROUP:
            raise ValidationError(
                f"{path}: expected a {API_GROUP} package, got {kind_name or 'unknown'}",
                details={"path": str(path)},
            )
        try:
            packages.append(get_kind(kind_name).package.model_validate(doc))
        except pydantic.ValidationError as exc:
            raise ValidationError(f"{path}: invalid {kind_name}: {exc}") from exc
    return packages


async def apply_packages(store: ObjectStore, packages: list[Object]) -> list[tuple[Object, str]]:
    """Create each package, or replace the spec of the existing one."""
    applied = []
    for package in packages:
        try:
            current: Any = await store.get(type(package), package.name)
        except NotFoundError:
            await store.create(package)
            applied.append((package, "created"))
            continue
        current.spec = package.spec  # type: ignore[attr-defined]
        current.metadata.labels.update(package.metadata.labels)
        await store.update(current)
        applied.append((package, "configured"))
    return applied


async def _apply(files: list[str], settings: Settings) -> list[tuple[Object, str]]:
    packages = [p for f in files for p in load_packages(Path(f))]
    async with open_store(settings) as store:
        return await apply_packages(store, packages)


def apply_command(files: list[str], settings: Settings | None = None) -> int:
    """Apply package manifests; returns an exit code."""
    applied = asyncio.run(_apply(files, settings or get_settings()))
    for package, action in applied:
        success(f"{package.kind.lower()}/{package.name} {action}")
    if not applied:
        console.print("[muted]No packages found[/muted]")
    return 0
