"""
Auth module for pixdrop.

Provides bearer-token verification, the auth middleware, the entitlement
gate and the request-identity dependencies.
"""

from pixdrop_core.auth.dependencies import (
    get_auth_context,
    get_request_context,
    get_subscription_lookup,
    require_user,
)
from pixdrop_core.auth.entitlements import EntitlementDecision, EntitlementGate, SubscriptionLookup
from pixdrop_core.auth.jwt_service import JwtService
from pixdrop_core.auth.middleware import AuthMiddleware

__all__ = [
    "AuthMiddleware",
    "EntitlementDecision",
    "EntitlementGate",
    "JwtService",
    "SubscriptionLookup",
    "get_auth_context",
    "get_request_context",
    "get_subscription_lookup",
    "require_user",
]
