"""
Request-scoped context for service operations.

RequestContext is the explicit value handed to the entitlement gate and
the processing invoker: who is calling (or anonymous), whether they hold
a premium entitlement, and the client metadata recorded with usage events.
Services never read ambient request state themselves.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from pixdrop_core.domain.auth import AuthContext


class RequestContext(BaseModel):
    """Request-scoped context for service operations.

    Attributes:
        request_id: Unique identifier for request tracing.
        user_id: Authenticated user, None for anonymous callers.
        is_premium: Premium entitlement flag.
        session_id: Client session identifier, if any.
        user_agent: Client User-Agent header.
        ip_address: Client address.
    """

    request_id: str
    user_id: str | None = None
    is_premium: bool = False
    session_id: str | None = None
    user_agent: str = ""
    ip_address: str = ""

    model_config = {"frozen": True}

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @classmethod
    def from_auth(cls, auth: "AuthContext", is_premium: bool = False) -> "RequestContext":
        """Create RequestContext from an AuthContext.

        Anonymous callers are never premium, whatever ``is_premium`` says.
        """
        return cls(
            request_id=auth.request_id,
            user_id=auth.user_id,
            is_premium=is_premium if auth.user_id else False,
            session_id=auth.session_id,
            user_agent=auth.user_agent,
            ip_address=auth.ip_address,
        )
