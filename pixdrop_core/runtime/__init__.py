"""
Service runtime layer for pixdrop.

This package provides shared request plumbing:
- RequestContext: Explicit per-request identity and entitlement
- ServiceError: Standardized errors with HTTP status and debug ids
"""

from .context import RequestContext
from .errors import ErrorCode, ServiceError

__all__ = [
    "ErrorCode",
    "RequestContext",
    "ServiceError",
]
