"""
FastAPI auth middleware.

Authenticates requests via an optional Authorization Bearer token and
attaches an AuthContext to request.state. Anonymous requests are allowed
everywhere; routes that need a user ask for one through the dependencies.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from pixdrop_core.config import settings
from pixdrop_core.domain.auth import AuthContext, Principal


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware to identify the caller of every request.

    - No Authorization header: anonymous context.
    - Valid Bearer JWT: context with the token's subject as user_id.
    - Invalid or unverifiable Bearer JWT: 401.

    Session id, user agent and client address are captured on the context
    for usage recording.
    """

    def __init__(self, app, jwt_service=None):
        """Initialize auth middleware.

        Args:
            app: The FastAPI/Starlette application.
            jwt_service: Optional JwtService (built lazily from settings if None).
        """
        super().__init__(app)
        self._jwt_service = jwt_service

    @property
    def jwt_service(self):
        """Lazily initialize JWT service; None when no secret is configured."""
        if self._jwt_service is None and settings.JWT_SECRET:
            from pixdrop_core.auth.jwt_service import JwtService

            self._jwt_service = JwtService()
        return self._jwt_service

    def _try_bearer_auth(self, request: Request, request_id: str) -> Principal | None:
        """Try to authenticate via Bearer JWT token."""
        auth_header = request.headers.get("Authorization", "")
        token = auth_header[7:]  # Strip "Bearer "

        if not self.jwt_service:
            logger.debug(f"[{request_id}] JWT service not configured")
            return None

        payload = self.jwt_service.verify_access_token(token)
        if not payload:
            return None

        return Principal(user_id=str(payload["sub"]), email=payload.get("email"))

    async def dispatch(self, request: Request, call_next):
        """Process incoming request for authentication."""
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        request.state.request_id = request_id

        principal = None
        if request.headers.get("Authorization", "").startswith("Bearer "):
            principal = self._try_bearer_auth(request, request_id)
            if principal is None:
                logger.warning(f"[{request_id}] Invalid Bearer token for {request.url.path}")
                return JSONResponse(
                    status_code=401,
                    content={"detail": "Invalid or expired token"},
                )

        request.state.auth = AuthContext(
            principal=principal,
            request_id=request_id,
            authenticated_at=datetime.now(timezone.utc) if principal else None,
            session_id=request.cookies.get(settings.SESSION_COOKIE_NAME)
            or request.headers.get("X-Session-Id"),
            user_agent=request.headers.get("User-Agent", ""),
            ip_address=request.client.host if request.client else "",
        )

        if principal:
            logger.debug(f"[{request_id}] Authenticated user={principal.user_id}")

        return await call_next(request)
