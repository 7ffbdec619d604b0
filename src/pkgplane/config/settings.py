"""
Application settings using Pydantic.

Provides environment-based configuration loading with PKGPLANE_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings

from pkgplane.apis.common import PullPolicy


class Settings(BaseSettings):
    """Application settings."""

    # Object store
    database_url: str = "sqlite+aiosqlite:///pkgplane.db"

    # Debug
    debug: bool = False

    # Version of the control plane packages are checked against. Packages
    # declare a compatible range in their metadata.
    platform_version: str = "v1.14.0"

    # Dependency resolution
    auto_install_dependencies: bool = True

    # Package content
    package_cache_dir: str = "packages"
    # Pull policy given to packages installed as dependencies.
    default_pull_policy: PullPolicy = PullPolicy.IF_NOT_PRESENT

    # Control loops
    workers: int = 4
    resync_period: float = 60.0
    reconcile_timeout: float = 30.0
    short_wait: float = 5.0
    long_wait: float = 60.0
    base_backoff: float = 0.5
    max_backoff: float = 300.0
    conflict_retries: int = 5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "PKGPLANE_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
