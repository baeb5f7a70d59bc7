# ===== slotbook/api/middleware/rate_limit_middleware.py =====
import logging
import time
from typing import Awaitable, Callable

import redis.asyncio as redis
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from slotbook.config.redis import RedisKeys

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-client requests-per-second limit on API routes.

    Counters live in Redis (INCR + EXPIRE on a one-second key) so every
    instance behind the load balancer shares the same counters. The client
    factory is injected so tests can pass their own.
    """

    def __init__(
            self,
            app,
            redis_factory: Callable[[], Awaitable[redis.Redis]],
            requests_per_second: int = 10
    ):
        super().__init__(app)
        self.redis_factory = redis_factory
        self.requests_per_second = requests_per_second

    @staticmethod
    def client_key(request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next):
        # Only apply to API routes
        if not request.url.path.startswith("/api/v1/"):
            return await call_next(request)

        key = RedisKeys.RATE_LIMIT_REQUESTS.format(
            client=self.client_key(request),
            second=int(time.time())
        )

        try:
            client = await self.redis_factory()
            count = await client.incr(key)
            if count == 1:
                await client.expire(key, 2)
        except redis.RedisError as e:
            # Limiter outage must not take the booking API down with it
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return await call_next(request)

        if count > self.requests_per_second:
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Rate limit exceeded. Too many requests per second.",
                    "retry_after": 1
                },
                headers={"Retry-After": "1"}
            )

        return await call_next(request)
