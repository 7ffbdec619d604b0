"""Core modules for pkgplane - centralized definitions and utilities."""

from pkgplane.core.errors import (
    AlreadyExistsError,
    ConfigurationError,
    ConflictError,
    ContentInvalidError,
    ExitCode,
    FetchError,
    ImmutableFieldError,
    NotConvergedError,
    NotFoundError,
    PkgPlaneError,
    PlatformConstraintError,
    StoreError,
    TransientError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)
from pkgplane.core.results import Result
from pkgplane.core.retry import retry_on_conflict

__all__ = [
    # Errors
    "ExitCode",
    "PkgPlaneError",
    "ConfigurationError",
    "StoreError",
    "NotFoundError",
    "AlreadyExistsError",
    "ConflictError",
    "TransientError",
    "FetchError",
    "ValidationError",
    "ContentInvalidError",
    "ImmutableFieldError",
    "PlatformConstraintError",
    "NotConvergedError",
    "main_with_error_handling",
    "format_error_message",
    # Results
    "Result",
    "retry_on_conflict",
]
