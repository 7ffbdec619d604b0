"""
pkgplane configuration.

Pydantic-based settings read from PKGPLANE_* environment variables and an
optional .env file.
"""

from pkgplane.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
