"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.tk_bidding.api.router import listings_router as bids_router
from src.tk_bidding.api.router import proposals_router
from src.tk_common.database import engine
from src.tk_common.errors import AppError
from src.tk_common.redis_client import close_redis, get_redis
from src.tk_common.response import error_response
from src.tk_gateway.middleware.rate_limit import RateLimitMiddleware
from src.tk_gateway.middleware.request_log import RequestLogMiddleware
from src.tk_ledger.api.router import router as tokens_router
from src.tk_pricing.api.router import router as pricing_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections. Shutdown: dispose."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    redis = await get_redis()
    await redis.ping()
    logger.info("%s %s started", settings.APP_NAME, APP_VERSION)
    yield
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=APP_VERSION,
    lifespan=lifespan,
)

# Last added runs first: request ids exist before rate limiting answers
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc, request)
    if exc.http_status >= 500:
        logger.error("[%s] %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(tokens_router, prefix="/api/v1")
app.include_router(pricing_router, prefix="/api/v1")
app.include_router(bids_router, prefix="/api/v1")
app.include_router(proposals_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}
