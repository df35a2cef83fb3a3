"""
Billboard API - FastAPI Application Entry Point.

Creates the FastAPI application, installs logging and CORS, converts every
error into the ``{"success": false, "error": ...}`` envelope, connects
MongoDB and Redis on startup, and mounts the v1 routers under ``/api/v1``.

Run locally with:
    uvicorn billboard.main:app --reload
"""

import logging
from datetime import UTC, datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from billboard import __version__
from billboard.api.v1 import api_router
from billboard.config import get_settings
from billboard.core.database import close_db, get_db_client, init_db
from billboard.core.redis_client import close_redis, get_redis_client, init_redis
from billboard.utils.logger import setup_logging


settings = get_settings()

setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)
logger = logging.getLogger(__name__)


app = FastAPI(
    title=f"{settings.app_name} API",
    version=__version__,
    description="Ad marketplace: pricing, payments, referrals and AI ad tools",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error Envelope
# =============================================================================


def _error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, **extra},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Invalid request data is a 400 carrying the first error message."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request data")
    if location:
        message = f"{location}: {message}"

    logger.info("Validation error on %s %s: %s", request.method, request.url.path, message)
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in errors
    ]
    return _error_response(status.HTTP_400_BAD_REQUEST, message, details=details)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    response = _error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# =============================================================================
# Lifecycle
# =============================================================================


@app.on_event("startup")
async def startup_event() -> None:
    """
    Connect MongoDB (creating indexes) and Redis.

    Failures are logged and startup continues, so ``/health`` stays reachable
    and persistence-backed endpoints answer 503.
    """
    try:
        await init_db()
    except RuntimeError as exc:
        logger.warning("Failed to initialize database connection: %s", exc)

    try:
        await init_redis()
    except RuntimeError as exc:
        logger.warning("Failed to initialize Redis connection: %s", exc)

    logger.info("%s API started on %s:%s", settings.app_name, settings.host, settings.port)


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await close_db()
    await close_redis()
    logger.info("%s API shutdown complete", settings.app_name)


# =============================================================================
# Service Endpoints
# =============================================================================


@app.get("/", tags=["root"])
async def root() -> dict:
    return {
        "name": f"{settings.app_name} API",
        "version": __version__,
        "description": "The Times Square of the Internet",
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health_check() -> dict:
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "Billboard Backend",
    }


@app.get("/ready", tags=["health"])
async def readiness_check() -> JSONResponse:
    """Readiness check: MongoDB must answer a ping, Redis is reported but optional."""
    try:
        database_ok = await get_db_client().ping()
    except RuntimeError:
        database_ok = False

    redis_client = get_redis_client()
    cache_ok = await redis_client.ping() if redis_client else False

    return JSONResponse(
        status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if database_ok else "not_ready",
            "database": database_ok,
            "cache": cache_ok,
        },
    )


app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    uvicorn.run(
        "billboard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
