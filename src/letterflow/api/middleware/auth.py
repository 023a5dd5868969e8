"""JWT Bearer authentication middleware."""

import logging

from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from letterflow.config import settings
from letterflow.logging_config import bind_request_context

logger = logging.getLogger(__name__)

# Paths that do not require authentication
_PUBLIC_PATHS = {
    "/api/v1/health",
    "/api/v1/health/live",
    "/api/v1/health/ready",
    "/docs",
    "/openapi.json",
    "/redoc",
}
_PUBLIC_PREFIXES = ("/api/v1/public/", "/local-storage/", "/docs", "/redoc")

ANONYMOUS = {"sub": "anonymous", "email": ""}


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as exc:
        logger.debug("JWT decode failed: %s", exc)
        raise ValueError(f"Invalid token: {exc}") from exc


class AuthMiddleware(BaseHTTPMiddleware):
    """Validate the Bearer token and attach the caller to request.state.user.

    Invalid tokens do not short-circuit here; routes that need a user raise
    AuthenticationError through the ``CurrentUser`` dependency.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        if path in _PUBLIC_PATHS or path.startswith(_PUBLIC_PREFIXES):
            request.state.user = dict(ANONYMOUS)
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            user_info = self._validate_jwt(auth_header[7:])
        else:
            user_info = dict(ANONYMOUS)

        request.state.user = user_info
        if user_info["sub"] != "anonymous":
            bind_request_context(getattr(request.state, "trace_id", "unknown"), user_id=user_info["sub"])
        return await call_next(request)

    def _validate_jwt(self, token: str) -> dict:
        try:
            payload = decode_token(token)
        except ValueError:
            return {**ANONYMOUS, "_auth_error": "invalid_token"}

        if payload.get("type") == "refresh":
            return {**ANONYMOUS, "_auth_error": "not_access_token"}

        return {"sub": payload.get("sub", ""), "email": payload.get("email", "")}
