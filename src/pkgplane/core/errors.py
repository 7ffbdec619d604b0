"""
Unified error handling for pkgplane.

Errors fall into the classes the control loops act on:

- transient infrastructure (store conflicts, fetch failures): retried
- invalid package content: terminal for one revision, surfaced as a condition
- configuration: reported by the CLI

Exit Codes:
- 0: Success
- 1: Warning (advisory, operation succeeded with warnings)
- 10: Configuration error
- 11: Store error (object store failure or conflict)
- 12: Validation error (invalid package content or object)
- 13: Not converged (reconciliation timed out)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    CONFIG_ERROR = 10
    STORE_ERROR = 11
    VALIDATION_ERROR = 12
    NOT_CONVERGED = 13
    UNKNOWN_ERROR = 127


class PkgPlaneError(Exception):
    """Base exception for pkgplane errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PkgPlaneError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class StoreError(PkgPlaneError):
    """Raised when the object store rejects or fails an operation."""

    exit_code = ExitCode.STORE_ERROR


class NotFoundError(StoreError):
    """Raised when an object does not exist."""


class AlreadyExistsError(StoreError):
    """Raised when creating an object whose name is taken."""


class ConflictError(StoreError):
    """Raised when a write observes a stale resource version.

    The whole reconciliation is restarted from a fresh read.
    """


class TransientError(PkgPlaneError):
    """Raised for failures expected to clear on retry (I/O, registry)."""

    exit_code = ExitCode.STORE_ERROR


class FetchError(TransientError):
    """Raised when package content cannot be retrieved."""


class ValidationError(PkgPlaneError):
    """Raised for validation failures."""

    exit_code = ExitCode.VALIDATION_ERROR


class ContentInvalidError(ValidationError):
    """Raised when a package's contents fail to parse or validate."""


class ImmutableFieldError(ValidationError):
    """Raised when an update touches a field fixed at creation."""


class PlatformConstraintError(ValidationError):
    """Raised when a package is incompatible with the running platform."""


class NotConvergedError(PkgPlaneError):
    """Raised when reconciliation does not settle before its deadline."""

    exit_code = ExitCode.NOT_CONVERGED


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - PkgPlaneError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except PkgPlaneError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: PkgPlaneError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
