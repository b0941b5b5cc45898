"""Fixed-window rate limiting backed by Redis.

Rules (per client IP, per minute):
  - bid group:   POST /api/v1/listings/{id}/bids   (RATE_LIMIT_BID_PER_MINUTE)
  - query group: every other /api/v1 request       (RATE_LIMIT_QUERY_PER_MINUTE)

Key pattern: "ratelimit:{client_ip}:{group}". The window is opened with
SET NX EX and counted with INCR in one MULTI/EXEC, so a counter always
carries its expiry.
The real client IP is taken from X-Forwarded-For when behind a reverse proxy.
If Redis is unreachable the request is let through.
"""

import logging

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from config.settings import settings
from src.tk_common.errors import RateLimitError
from src.tk_common.redis_client import get_redis
from src.tk_common.response import error_response

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60
_API_PREFIX = "/api/v1"


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def endpoint_group(request: Request) -> str | None:
    """Map a request to its limit group; None means not rate limited."""
    path = request.url.path
    if not path.startswith(_API_PREFIX):
        return None
    if request.method == "POST" and path.endswith("/bids"):
        return "bid"
    return "query"


def _limit_for(group: str) -> int:
    if group == "bid":
        return settings.RATE_LIMIT_BID_PER_MINUTE
    return settings.RATE_LIMIT_QUERY_PER_MINUTE


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        group = endpoint_group(request)
        if group is None:
            return await call_next(request)

        key = f"ratelimit:{client_ip(request)}:{group}"
        try:
            redis = await get_redis()
            pipe = redis.pipeline(transaction=True)
            pipe.set(key, 0, ex=_WINDOW_SECONDS, nx=True)
            pipe.incr(key)
            _, count = await pipe.execute()
        except (RedisError, OSError) as exc:
            logger.warning("Rate limiter unavailable, allowing request: %s", exc)
            return await call_next(request)

        if count > _limit_for(group):
            err = RateLimitError()
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err, request).model_dump(),
                headers={"Retry-After": str(_WINDOW_SECONDS)},
            )
        return await call_next(request)
