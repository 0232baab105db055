"""
JWT verification for bearer access tokens.

Tokens are issued by the account service (login/session handling lives
there). This service only needs to verify them and read the subject;
``create_access_token`` exists so internal tools and tests can mint tokens
with the shared secret.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TypedDict

import jwt

from pixdrop_core.config import settings


class TokenPayload(TypedDict):
    """Decoded JWT payload."""

    sub: str  # user_id
    email: str | None
    iat: int
    exp: int


class JwtService:
    """Service for JWT token validation."""

    ALGORITHM = "HS256"

    def __init__(self, secret: str | None = None, access_ttl: int = 900):
        """Initialize the JWT service.

        Args:
            secret: JWT signing secret. Defaults to settings.JWT_SECRET.
            access_ttl: Lifetime of minted tokens in seconds.
        """
        self.secret = secret or settings.JWT_SECRET
        self.access_ttl = access_ttl

        if not self.secret:
            raise ValueError("JWT_SECRET must be configured")

    def create_access_token(self, user_id: str, email: str | None = None) -> str:
        """Create a short-lived access token.

        Args:
            user_id: The user's id.
            email: Optional email claim.

        Returns:
            Encoded JWT string.
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "email": email,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.access_ttl)).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.ALGORITHM)

    def verify_access_token(self, token: str) -> TokenPayload | None:
        """Verify and decode an access token.

        Args:
            token: The JWT string.

        Returns:
            Decoded payload if valid, None otherwise.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.ALGORITHM])
            return TokenPayload(
                sub=payload["sub"],
                email=payload.get("email"),
                iat=payload["iat"],
                exp=payload["exp"],
            )
        except jwt.ExpiredSignatureError:
            return None
        except (jwt.InvalidTokenError, KeyError):
            return None
