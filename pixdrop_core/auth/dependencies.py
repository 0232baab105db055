"""
FastAPI dependencies for request identity.

Provides dependency injection for:
- Extracting auth context from requests
- Building the explicit RequestContext (with the premium flag)
- Requiring an authenticated user for an endpoint
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request

from pixdrop_core.auth.entitlements import SubscriptionLookup
from pixdrop_core.domain.auth import AuthContext
from pixdrop_core.domain.exceptions import AuthenticationRequired
from pixdrop_core.runtime.context import RequestContext


def get_auth_context(request: Request) -> AuthContext:
    """Get auth context from request state.

    Falls back to an anonymous context when the middleware did not run
    (e.g. routers mounted on a bare app in tests).
    """
    auth = getattr(request.state, "auth", None)
    if auth is None:
        auth = AuthContext(
            principal=None,
            request_id=getattr(request.state, "request_id", "unknown"),
            user_agent=request.headers.get("User-Agent", ""),
            ip_address=request.client.host if request.client else "",
        )
    return auth


@lru_cache()
def get_subscription_lookup() -> SubscriptionLookup:
    """Get the subscription lookup instance."""
    return SubscriptionLookup()


def get_request_context(
    auth: AuthContext = Depends(get_auth_context),
    subscriptions: SubscriptionLookup = Depends(get_subscription_lookup),
) -> RequestContext:
    """Build the explicit per-request context.

    The premium flag is only looked up for authenticated callers.
    """
    is_premium = subscriptions.is_premium(auth.user_id) if auth.user_id else False
    return RequestContext.from_auth(auth, is_premium=is_premium)


def require_user(auth: AuthContext = Depends(get_auth_context)) -> str:
    """Get the authenticated user id or fail with 401."""
    if not auth.user_id:
        raise AuthenticationRequired("Not authenticated")
    return auth.user_id
