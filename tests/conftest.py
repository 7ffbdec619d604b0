"""Root test configuration."""

import logging
from typing import Any

import pytest
import structlog
import yaml

from pkgplane.config import Settings
from pkgplane.revision import MemoryControllerRuntime, MemoryEstablisher
from pkgplane.store import MemoryObjectStore
from pkgplane.xpkg import StaticFetcher

REGISTRY = "xpkg.example.io"


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def crd(name: str, versions: tuple[str, ...] = ("v1",), *, conversion: str | None = None) -> dict:
    body: dict[str, Any] = {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "metadata": {"name": name},
        "spec": {"versions": [{"name": v, "served": True} for v in versions]},
    }
    if conversion:
        body["spec"]["conversion"] = {"strategy": conversion}
    return body


def package_yaml(
    name: str = "provider-aws",
    kind: str = "Provider",
    *,
    crossplane: str | None = None,
    depends_on: list[dict] | None = None,
    objects: list[dict] | None = None,
    controller: dict | None = None,
    labels: dict[str, str] | None = None,
) -> str:
    """Render a package stream: the metadata document followed by its objects."""
    spec: dict[str, Any] = {}
    if crossplane:
        spec["crossplane"] = {"version": crossplane}
    if controller:
        spec["controller"] = controller
    if depends_on:
        spec["dependsOn"] = depends_on
    meta = {
        "apiVersion": "meta.pkg.crossplane.io/v1",
        "kind": kind,
        "metadata": {"name": name, "labels": labels or {}},
        "spec": spec,
    }
    if objects is None:
        objects = [crd(f"buckets.{name}.example.io")] if kind != "Configuration" else []
    return yaml.safe_dump_all([meta, *objects], sort_keys=False)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        platform_version="v1.14.0",
        auto_install_dependencies=True,
        workers=2,
        resync_period=60.0,
        reconcile_timeout=5.0,
        short_wait=0.05,
        long_wait=0.2,
        base_backoff=0.01,
        max_backoff=0.1,
        conflict_retries=5,
    )


@pytest.fixture
def store():
    return MemoryObjectStore()


@pytest.fixture
def fetcher():
    return StaticFetcher()


@pytest.fixture
def establisher():
    return MemoryEstablisher()


@pytest.fixture
def runtime():
    return MemoryControllerRuntime()


@pytest.fixture
def make_package_yaml():
    return package_yaml


@pytest.fixture
def make_crd():
    return crd
