"""
Standardized error model for pixdrop services.

Every error that reaches the HTTP boundary is a ServiceError. It carries a
machine-readable code, a message that is safe to show to clients, an
optional debug message that stays in the server logs, and the HTTP status
the API layer renders it with.
"""

from __future__ import annotations

import uuid
from typing import Any


class ServiceError(Exception):
    """Standardized service error.

    Attributes:
        code: Error code for programmatic handling.
        message_safe: Safe message for logging and user display.
        message_debug: Optional detailed message for debugging.
        status_code: HTTP status used when the error reaches the API.
        retryable: Whether this error can be retried.
        cause: Optional underlying exception.
        debug_id: Unique identifier for support tickets.
    """

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message_safe: str,
        message_debug: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
        cause: Exception | None = None,
        debug_id: str | None = None,
    ):
        """Initialize a ServiceError.

        Args:
            code: Machine-readable error code.
            message_safe: Human-readable message safe for logs.
            message_debug: Optional detailed debug message.
            status_code: Optional HTTP status override.
            retryable: Whether the operation can be retried.
            cause: Optional underlying exception.
            debug_id: Optional correlation ID (auto-generated if None).
        """
        super().__init__(message_safe)
        self.code = code
        self.message_safe = message_safe
        self.message_debug = message_debug
        if status_code is not None:
            self.status_code = status_code
        self.retryable = retryable
        self.cause = cause
        self.debug_id = debug_id or str(uuid.uuid4())[:8]

    def __str__(self) -> str:
        return f"[{self.code}] {self.message_safe}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"message_safe={self.message_safe!r}, "
            f"status_code={self.status_code}, "
            f"debug_id={self.debug_id!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses.

        Returns:
            Dictionary with error details (excludes debug info). ``detail``
            mirrors ``message`` so clients written against FastAPI's
            HTTPException shape keep working.
        """
        return {
            "code": self.code,
            "message": self.message_safe,
            "detail": self.message_safe,
            "debug_id": self.debug_id,
        }


class ErrorCode:
    """Standard error codes for common failure scenarios."""

    # Storage
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"

    # Authentication/Authorization
    UNAUTHORIZED = "UNAUTHORIZED"
    BATCH_LIMIT = "BATCH_LIMIT"
    INVALID_TOKEN = "INVALID_DOWNLOAD_TOKEN"

    # Validation
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    NOT_READY = "NOT_READY"
    EXPIRED = "EXPIRED"
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # Processing
    PROCESSING_FAILED = "PROCESSING_FAILED"
    INTEGRITY_ANOMALY = "INTEGRITY_ANOMALY"

    # Internal
    INTERNAL_ERROR = "INTERNAL_ERROR"
