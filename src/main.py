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
from src.pl_account.api.router import router as account_router
from src.pl_common.database import engine
from src.pl_common.errors import AppError
from src.pl_common.logging_config import setup_logging
from src.pl_common.redis_client import close_redis, get_redis
from src.pl_common.response import error_response
from src.pl_gateway.api.router import router as auth_router
from src.pl_gateway.middleware.rate_limit import RateLimitMiddleware
from src.pl_gateway.middleware.request_log import RequestLogMiddleware
from src.pl_storage.provider import get_repository
from src.pl_transfer.api.router import router as transfer_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: logging, verify DB + Redis, build the repository. Shutdown: dispose."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    get_repository()
    logger.info("%s started", settings.APP_NAME)
    yield
    await engine.dispose()
    await close_redis()
    logger.info("%s stopped", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# Last added runs first: RequestLog assigns request_id before the rate limiter
app.add_middleware(
    RateLimitMiddleware,
    limit=settings.RATE_LIMIT_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    enabled=settings.RATE_LIMIT_ENABLED,
)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    message = exc.message
    if exc.http_status >= 500:
        logger.error(
            "%s %s failed: [%d] %s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
            exc_info=exc,
        )
        # Root causes stay in the log, callers only see the classification
        message = "Internal server error"
    resp = error_response(exc.code, message, request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(auth_router, prefix="/api/v1")
app.include_router(account_router, prefix="/api/v1")
app.include_router(transfer_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
