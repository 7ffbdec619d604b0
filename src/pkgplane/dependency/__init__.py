"""Dependency resolution and status tracking for package revisions."""

from pkgplane.dependency.constraints import (
    InvalidConstraintError,
    highest_satisfying,
    parse_version,
    satisfies,
    validate_constraint,
)
from pkgplane.dependency.resolver import DependencyResolver, Resolution, installed_version
from pkgplane.dependency.status import (
    SKIPPED,
    DependencyStatus,
    DependencyStatusTracker,
    skipped_condition,
)

__all__ = [
    "SKIPPED",
    "DependencyResolver",
    "DependencyStatus",
    "DependencyStatusTracker",
    "InvalidConstraintError",
    "Resolution",
    "highest_satisfying",
    "installed_version",
    "parse_version",
    "satisfies",
    "skipped_condition",
    "validate_constraint",
]
