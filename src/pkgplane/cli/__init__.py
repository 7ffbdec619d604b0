"""
CLI commands for pkgplane.
"""

from pkgplane.cli.apply import apply_command
from pkgplane.cli.get import get_command
from pkgplane.cli.reconcile import reconcile_command

__all__ = [
    "apply_command",
    "get_command",
    "reconcile_command",
]
