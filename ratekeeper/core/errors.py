"""Application-level exception types.

This module defines the errors raised by the limiter core, its stores and the
HTTP integration, enabling consistent error handling, logging, and API
responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what is relevant.
    """

    code: str
    message: str
    hint: str
    field: str
    value: Any
    operation: str
    key_hash: str
    backend: str
    http_status: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for rate limiting failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class InvalidConfigError(AppError):
    """Raised at construction time when an algorithm or limiter is misconfigured."""


class InvalidKeyError(AppError):
    """Raised when the key function produces an empty limiter key."""


class StoreFailureError(AppError):
    """Raised when a state store load/save/reset operation fails.

    The failing operation name is available in ``details["operation"]``.
    """

    @property
    def operation(self) -> str | None:
        return (self.details or {}).get("operation")


class MalformedStateError(StoreFailureError):
    """Raised when persisted state cannot be interpreted by an algorithm."""


def store_failure(
    operation: str,
    message: str,
    *,
    backend: str | None = None,
    malformed: bool = False,
) -> StoreFailureError:
    """Build a StoreFailureError (or MalformedStateError) tagged with the operation.

    Args:
        operation: Store operation name (``load``, ``save`` or ``reset``).
        message: Human-readable description.
        backend: Optional backend name for observability.
        malformed: Build a MalformedStateError instead.

    Returns:
        The error instance, ready to be raised.
    """

    details: ErrorDetails = {"operation": operation}
    if backend:
        details["backend"] = backend

    if malformed:
        return MalformedStateError(code="malformed_state", message=message, details=details)
    return StoreFailureError(code="store_failure", message=message, details=details)
