"""Unit tests for the Redis fixed-window rate limiter."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from config.settings import settings
from src.tk_gateway.middleware.rate_limit import (
    RateLimitMiddleware,
    client_ip,
    endpoint_group,
)


def _request(method: str, path: str, forwarded: str | None = None, host: str = "10.0.0.1") -> MagicMock:
    request = MagicMock()
    request.method = method
    request.url.path = path
    request.headers = {"x-forwarded-for": forwarded} if forwarded else {}
    request.client.host = host
    request.state.request_id = "req_test"
    return request


class TestEndpointGroup:
    def test_bid_submission(self) -> None:
        assert endpoint_group(_request("POST", "/api/v1/listings/L1/bids")) == "bid"

    def test_reads_are_query_group(self) -> None:
        assert endpoint_group(_request("GET", "/api/v1/listings/L1/quote")) == "query"
        assert endpoint_group(_request("GET", "/api/v1/tokens/balance")) == "query"

    def test_non_api_paths_not_limited(self) -> None:
        assert endpoint_group(_request("GET", "/health")) is None
        assert endpoint_group(_request("GET", "/docs")) is None


class TestClientIp:
    def test_forwarded_for_first_hop(self) -> None:
        assert client_ip(_request("GET", "/", forwarded="1.2.3.4, 10.0.0.2")) == "1.2.3.4"

    def test_falls_back_to_peer(self) -> None:
        assert client_ip(_request("GET", "/", host="192.168.1.9")) == "192.168.1.9"


def _redis(count: int) -> tuple[MagicMock, MagicMock]:
    """A Redis client whose MULTI/EXEC pipeline reports `count` for the INCR."""
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[True, count])
    redis = MagicMock()
    redis.pipeline.return_value = pipe
    return redis, pipe


class TestDispatch:
    @pytest.mark.asyncio
    async def test_first_hit_opens_window_and_passes(self) -> None:
        redis, pipe = _redis(1)
        call_next = AsyncMock(return_value="downstream")
        middleware = RateLimitMiddleware(app=MagicMock())
        with patch("src.tk_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=redis)):
            response = await middleware.dispatch(_request("POST", "/api/v1/listings/L1/bids"), call_next)
        assert response == "downstream"
        redis.pipeline.assert_called_once_with(transaction=True)
        pipe.set.assert_called_once_with("ratelimit:10.0.0.1:bid", 0, ex=60, nx=True)
        pipe.incr.assert_called_once_with("ratelimit:10.0.0.1:bid")
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_expiry_travels_with_every_increment(self) -> None:
        # A counter can never exist without its TTL, whichever hit created it
        redis, pipe = _redis(7)
        middleware = RateLimitMiddleware(app=MagicMock())
        with patch("src.tk_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=redis)):
            await middleware.dispatch(
                _request("GET", "/api/v1/tokens/balance"), AsyncMock(return_value="downstream")
            )
        pipe.set.assert_called_once_with("ratelimit:10.0.0.1:query", 0, ex=60, nx=True)
        assert not redis.incr.called
        assert not redis.expire.called

    @pytest.mark.asyncio
    async def test_over_limit_returns_429(self) -> None:
        redis, _ = _redis(settings.RATE_LIMIT_BID_PER_MINUTE + 1)
        call_next = AsyncMock()
        middleware = RateLimitMiddleware(app=MagicMock())
        with patch("src.tk_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=redis)):
            response = await middleware.dispatch(_request("POST", "/api/v1/listings/L1/bids"), call_next)
        assert response.status_code == 429
        assert response.headers["retry-after"] == "60"
        call_next.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_query_group_uses_its_own_limit(self) -> None:
        redis, _ = _redis(settings.RATE_LIMIT_BID_PER_MINUTE + 1)
        call_next = AsyncMock(return_value="downstream")
        middleware = RateLimitMiddleware(app=MagicMock())
        with patch("src.tk_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=redis)):
            response = await middleware.dispatch(_request("GET", "/api/v1/tokens/balance"), call_next)
        assert settings.RATE_LIMIT_QUERY_PER_MINUTE > settings.RATE_LIMIT_BID_PER_MINUTE
        assert response == "downstream"

    @pytest.mark.asyncio
    async def test_redis_down_lets_request_through(self) -> None:
        redis, pipe = _redis(1)
        pipe.execute.side_effect = RedisConnectionError("refused")
        call_next = AsyncMock(return_value="downstream")
        middleware = RateLimitMiddleware(app=MagicMock())
        with patch("src.tk_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=redis)):
            response = await middleware.dispatch(_request("GET", "/api/v1/tokens/balance"), call_next)
        assert response == "downstream"

    @pytest.mark.asyncio
    async def test_unlimited_path_skips_redis(self) -> None:
        get_redis = AsyncMock()
        call_next = AsyncMock(return_value="downstream")
        middleware = RateLimitMiddleware(app=MagicMock())
        with patch("src.tk_gateway.middleware.rate_limit.get_redis", get_redis):
            await middleware.dispatch(_request("GET", "/health"), call_next)
        get_redis.assert_not_awaited()
