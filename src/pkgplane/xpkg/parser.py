"""Parse a package's YAML stream into :class:`PackageContent`."""

from __future__ import annotations

from typing import Any

import pydantic
import structlog
import yaml

from pkgplane.core.errors import ContentInvalidError
from pkgplane.xpkg.manifest import (
    ALLOWED_OBJECT_KINDS,
    META_API_GROUP,
    PackageContent,
    PackageMeta,
    PackageObject,
)

logger = structlog.get_logger()


def _is_meta(doc: dict[str, Any]) -> bool:
    return str(doc.get("apiVersion", "")).split("/", 1)[0] == META_API_GROUP


def _load_documents(text: str) -> list[dict[str, Any]]:
    try:
        docs = [doc for doc in yaml.safe_load_all(text) if doc is not None]
    except yaml.YAMLError as exc:
        raise ContentInvalidError(f"Package is not valid YAML: {exc}") from exc

    for i, doc in enumerate(docs):
        if not isinstance(doc, dict):
            raise ContentInvalidError(
                "Package document is not a mapping", details={"document": i}
            )
    return docs


def _parse_object(doc: dict[str, Any], index: int) -> PackageObject:
    api_version = doc.get("apiVersion")
    kind = doc.get("kind")
    name = (doc.get("metadata") or {}).get("name")
    if not (api_version and kind and name):
        raise ContentInvalidError(
            "Package object needs apiVersion, kind and metadata.name",
            details={"document": index},
        )
    return PackageObject(api_version=api_version, kind=kind, name=name, body=doc)


def parse_package(text: str) -> PackageContent:
    """Parse and validate a package stream.

    Raises:
        ContentInvalidError: on malformed YAML, a missing or duplicate
            metadata document, objects the package kind may not install, or
            duplicate objects.
    """
    docs = _load_documents(text)

    metas = [doc for doc in docs if _is_meta(doc)]
    if len(metas) != 1:
        raise ContentInvalidError(
            "Package must contain exactly one metadata document",
            details={"found": len(metas)},
        )
    try:
        meta = PackageMeta.model_validate(metas[0])
    except pydantic.ValidationError as exc:
        raise ContentInvalidError(f"Invalid package metadata: {exc}") from exc

    allowed = ALLOWED_OBJECT_KINDS.get(meta.kind)
    if allowed is None:
        raise ContentInvalidError(
            f"Unknown package kind '{meta.kind}'", details={"kind": meta.kind}
        )

    objects: list[PackageObject] = []
    seen: set[tuple[str, str, str]] = set()
    for index, doc in enumerate(docs):
        if _is_meta(doc):
            continue
        obj = _parse_object(doc, index)
        if obj.kind not in allowed:
            raise ContentInvalidError(
                f"{meta.kind} packages may not contain {obj.kind} objects",
                details={"object": obj.name},
            )
        key = obj.reference.key
        if key in seen:
            raise ContentInvalidError(
                f"Package contains {obj.kind} {obj.name} more than once",
                details={"object": obj.name},
            )
        seen.add(key)
        objects.append(obj)

    logger.debug(
        "package_parsed",
        package=meta.metadata.name,
        kind=meta.kind,
        objects=len(objects),
        dependencies=len(meta.spec.depends_on),
    )
    return PackageContent(meta=meta, objects=objects)
