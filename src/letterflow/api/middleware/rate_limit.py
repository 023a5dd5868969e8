"""Rate limiting using slowapi."""

import logging

from fastapi import FastAPI, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from letterflow.config import Settings

logger = logging.getLogger(__name__)


def get_rate_limit_key(request: Request) -> str:
    """Use user_id for authenticated users, IP for anonymous."""
    user = getattr(request.state, "user", {}) or {}
    sub = user.get("sub", "")
    if sub and sub != "anonymous":
        return f"user:{sub}"
    return get_remote_address(request)


def setup_rate_limiter(app: FastAPI, settings: Settings) -> None:
    """Attach a slowapi limiter with a default per-caller limit."""
    if not settings.rate_limit_enabled:
        return

    storage_uri = "memory://" if settings.local_mode else settings.redis_url
    limiter = Limiter(
        key_func=get_rate_limit_key,
        default_limits=[settings.rate_limit_default],
        storage_uri=storage_uri,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    logger.info("Rate limiter configured (%s, storage=%s)", settings.rate_limit_default, storage_uri.split(":")[0])
