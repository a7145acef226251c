"""
Per-client fixed-window rate limiting backed by Redis counters.
"""

import logging
import time

from fastapi import Depends, HTTPException, Request, Response

from config import settings
from redis_client import RedisClient, get_redis_client

logger = logging.getLogger(__name__)


def client_address(request: Request) -> str:
    """
    Client IP from the socket peer.

    Behind a trusted proxy uvicorn rewrites the peer from X-Forwarded-For
    (see FORWARDED_ALLOW_IPS), so request headers are never read here.
    """
    if request.client:
        return request.client.host
    return "unknown"


class RateLimiter:
    """
    FastAPI dependency allowing ``max_requests`` per client per window.

    Usage:
        @router.get("/path", dependencies=[Depends(RateLimiter("scope", 30, 900))])
    """

    def __init__(self, scope: str, max_requests: int, window_seconds: int):
        self.scope = scope
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def __call__(
        self,
        request: Request,
        response: Response,
        redis_client: RedisClient = Depends(get_redis_client),
    ):
        now = int(time.time())
        window = now // self.window_seconds
        reset = (window + 1) * self.window_seconds - now
        key = f"ratelimit:{self.scope}:{client_address(request)}:{window}"

        count = await redis_client.increment_window(key, self.window_seconds)
        if count is None:
            logger.warning(f"⚠️  Rate limiter unavailable for '{self.scope}', allowing request")
            return

        headers = {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(max(0, self.max_requests - count)),
            "RateLimit-Reset": str(reset),
        }

        if count > self.max_requests:
            logger.warning(f"🚫 Rate limit exceeded for '{self.scope}' by {client_address(request)}")
            raise HTTPException(
                status_code=429,
                detail="요청이 너무 많습니다. 잠시 후 다시 시도해주세요.",
                headers={**headers, "Retry-After": str(reset)},
            )

        response.headers.update(headers)


profile_rate_limit = RateLimiter(
    "profile", settings.PROFILE_RATE_LIMIT, settings.RATE_LIMIT_WINDOW
)
listing_rate_limit = RateLimiter(
    "listing", settings.LISTING_RATE_LIMIT, settings.RATE_LIMIT_WINDOW
)
