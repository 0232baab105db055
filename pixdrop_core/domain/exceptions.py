"""
Standard exceptions for pixdrop.

This module defines the hierarchy of exceptions used across the platform.
Each class pins the error code and HTTP status so raise sites only pass
the message.
"""

from __future__ import annotations

from pixdrop_core.runtime.errors import ErrorCode, ServiceError


class PixdropError(ServiceError):
    """Base exception for all pixdrop errors."""

    code: str = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message_safe: str,
        message_debug: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(
            code=self.code,
            message_safe=message_safe,
            message_debug=message_debug,
            cause=cause,
        )


class InvalidUploadError(PixdropError):
    """Bad file type/size, missing files or invalid operation settings."""

    code = ErrorCode.INVALID_INPUT
    status_code = 400


class PermissionDenied(PixdropError):
    """Caller is not entitled to the requested action."""

    code = ErrorCode.BATCH_LIMIT
    status_code = 403


class BatchLimitExceeded(PermissionDenied):
    """Batch larger than the caller's entitlement allows."""

    pass


class AuthenticationRequired(PixdropError):
    """Endpoint needs an authenticated user."""

    code = ErrorCode.UNAUTHORIZED
    status_code = 401


class ProcessingFailure(PixdropError):
    """Transform or artifact write failed for one file."""

    code = ErrorCode.PROCESSING_FAILED
    status_code = 500


class StorageUnavailable(PixdropError):
    """Job store or artifact store could not be reached."""

    code = ErrorCode.STORAGE_UNAVAILABLE
    status_code = 500


class JobNotFound(PixdropError):
    """No job with the given id."""

    code = ErrorCode.NOT_FOUND
    status_code = 404


class InvalidJobTransition(PixdropError):
    """Attempt to move a job that already reached a terminal state."""

    code = ErrorCode.INVALID_TRANSITION
    status_code = 409


class DownloadError(PixdropError):
    """Base exception for download gateway refusals."""

    pass


class JobNotReady(DownloadError):
    """Job missing or not completed."""

    code = ErrorCode.NOT_READY
    status_code = 404


class ArtifactExpired(DownloadError):
    """Retention window elapsed."""

    code = ErrorCode.EXPIRED
    status_code = 410


class InvalidDownloadToken(DownloadError):
    """Token does not match the job."""

    code = ErrorCode.INVALID_TOKEN
    status_code = 403


class ArtifactMissing(DownloadError):
    """Completed job whose artifact bytes are gone (integrity anomaly).

    Clients see a plain not-found; the gateway logs the anomaly.
    """

    code = ErrorCode.NOT_FOUND
    status_code = 404
