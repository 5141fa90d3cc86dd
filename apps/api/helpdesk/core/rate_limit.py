"""Rate limiting configuration for the helpdesk API."""

import logging
import os

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from helpdesk.core.config import settings

# Redis-backed for multi-worker deployments.
# Falls back to in-memory if Redis is not available (dev/test mode)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)
AI_LIMIT = f"{settings.RATE_LIMIT_AI}/minute" if settings.RATE_LIMIT_AI > 0 else "1000/minute"


def client_ip_key(request: Request) -> str:
    """
    Rate-limit key: the caller's IP.

    Only trusts X-Forwarded-For when TRUST_PROXY_HEADERS=True (behind reverse proxy).
    """
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For: client, proxy1, proxy2 - take first
            return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _build_limiter() -> Limiter:
    if IS_TESTING:
        return Limiter(
            key_func=client_ip_key,
            storage_uri="memory://",
            default_limits=DEFAULT_LIMITS,
            enabled=False,
        )
    try:
        import redis

        r = redis.from_url(REDIS_URL, socket_connect_timeout=1)
        r.ping()
        return Limiter(
            key_func=client_ip_key,
            storage_uri=REDIS_URL,
            default_limits=DEFAULT_LIMITS,
        )
    except Exception as e:
        logging.warning(f"Redis unavailable for rate limiting, using in-memory: {e}")
        return Limiter(
            key_func=client_ip_key,
            storage_uri="memory://",
            default_limits=DEFAULT_LIMITS,
        )


limiter = _build_limiter()
