"""Application-level exception types.

This module defines domain errors used across the quota engine, the Kagi
adapter and the HTTP layer, enabling consistent handling, logging, and API
responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    setting: str
    value: str
    path: str
    scope: str
    http_status: int
    upstream_detail: str
    command_limit: str
    global_limit: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

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


class ValidationAppError(AppError):
    """Raised when request input fails validation."""


class ConfigurationError(AppError):
    """Raised when quota or client configuration is malformed. Fatal at startup."""


class StorageError(AppError):
    """Raised when the usage store cannot be read or written."""


class EvaluationError(AppError):
    """Raised when counting usage in the ledger fails unexpectedly."""


class QuotaExceededAppError(AppError):
    """Raised by the HTTP layer when an identity is out of quota."""


class DirectMessageNotAllowedError(AppError):
    """Raised when a command arrives outside a guild and DMs are disabled."""


class KagiAppError(AppError):
    """Raised when a Kagi API call fails or returns an unusable payload."""
