"""Fixed-window rate limiting per client IP, counted in Redis.

    count = INCR ratelimit:{ip}:{window}
    if count == 1: EXPIRE key window_seconds
    if count > limit: 429

The client IP is the first X-Forwarded-For hop when present (reverse proxy),
else the socket peer. If Redis is unreachable the request is let through and
a warning is logged.
"""

import logging
import time
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from src.pl_common.errors import RateLimitError
from src.pl_common.redis_client import get_redis
from src.pl_common.response import error_response

logger = logging.getLogger(__name__)

# Never throttled: liveness probes
_EXEMPT_PATHS = frozenset({"/health"})


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        *,
        limit: int,
        window_seconds: int,
        enabled: bool = True,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(app)
        if limit < 1 or window_seconds < 1:
            raise ValueError("limit and window_seconds must be >= 1")
        self._limit = limit
        self._window = window_seconds
        self._enabled = enabled
        self._redis_factory = redis_factory
        self._clock = clock

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self._enabled or request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        ip = client_ip(request)
        window = int(self._clock()) // self._window
        key = f"ratelimit:{ip}:{window}"
        try:
            redis = await self._redis_factory()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, self._window)
        except (RedisError, OSError) as exc:
            logger.warning("Rate limiter unavailable, allowing request from %s: %s", ip, exc)
            return await call_next(request)

        if count > self._limit:
            err = RateLimitError()
            retry_after = self._window - int(self._clock()) % self._window
            logger.info("Rate limit exceeded for %s (%d/%d)", ip, count, self._limit)
            resp = error_response(
                err.code, err.message, getattr(request.state, "request_id", None)
            )
            return JSONResponse(
                status_code=err.http_status,
                content=resp.model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
