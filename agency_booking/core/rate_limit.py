"""Rate limiting for the public booking API.

Counters live in Redis so limits hold across API workers. When Redis cannot
be reached at startup (or under TESTING) they fall back to process memory.
"""

import logging
import os

import redis
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from agency_booking.core.config import settings

logger = logging.getLogger(__name__)

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
MEMORY_STORAGE = "memory://"
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)
DEFAULT_RETRY_AFTER_SECONDS = 60


def _client_ip(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For only behind a trusted proxy."""
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _storage_uri() -> str:
    if IS_TESTING:
        return MEMORY_STORAGE
    try:
        redis.from_url(settings.REDIS_URL, socket_connect_timeout=1).ping()
    except (redis.RedisError, ValueError) as e:
        logger.warning("Redis unavailable for rate limiting, using in-memory storage: %s", e)
        return MEMORY_STORAGE
    return settings.REDIS_URL


limiter = Limiter(
    key_func=_client_ip,
    storage_uri=_storage_uri(),
    default_limits=DEFAULT_LIMITS,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render a 429 with Retry-After in the API's error shape."""
    retry_after = DEFAULT_RETRY_AFTER_SECONDS
    limit = getattr(exc, "limit", None)
    if limit is not None and getattr(limit, "limit", None) is not None:
        retry_after = int(limit.limit.get_expiry())
    logger.info("Rate limit exceeded for %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests. Please try again later."},
        headers={"Retry-After": str(retry_after)},
    )
