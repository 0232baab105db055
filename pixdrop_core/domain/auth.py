"""
Authentication domain models.

This module defines the core data structures for auth:
- Principal: Authenticated identity (from a verified bearer token)
- AuthContext: Request-scoped auth context, anonymous when principal is None
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Principal:
    """Authenticated identity derived from an access token."""

    user_id: str
    email: str | None = None


@dataclass
class AuthContext:
    """Request-scoped authentication context.

    Attached to request.state.auth by the auth middleware for every
    request, authenticated or not.
    """

    principal: Principal | None
    request_id: str
    authenticated_at: datetime | None = None
    session_id: str | None = None
    user_agent: str = ""
    ip_address: str = ""

    @property
    def user_id(self) -> str | None:
        """Get user_id from principal, None for anonymous callers."""
        return self.principal.user_id if self.principal else None

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None
