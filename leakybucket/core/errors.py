"""Application-level exception types.

This module defines the errors raised by the limiter and its storage
backends, enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what it knows.
    """

    code: str
    message: str
    hint: str
    field: str
    actual_value: Any
    backend: str
    operation: str
    key_hash: str
    retry_after: float
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for limiter and backend failures.

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


class ConfigError(AppError):
    """Raised when limiter configuration is invalid (non-positive rate etc.)."""


@dataclass
class StorageError(AppError):
    """Raised when a backend cannot read or write bucket state.

    Attributes:
        key: The rate-limit key whose state could not be read or written.
    """

    key: str | None = None
