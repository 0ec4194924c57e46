import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pythonjsonlogger.json import JsonFormatter
from starlette.middleware.cors import CORSMiddleware

from eventbook.api.api import api_router
from eventbook.api.openapi_tags import tags_metadata
from eventbook.core.database_manager import db_manager
from eventbook.core.errors import BookingError, to_http_exception
from eventbook.core.settings import get_settings
from eventbook.crud import user as user_crud
from eventbook.middleware.monitoring import (
    MonitoringMiddleware,
    get_health_status,
    get_prometheus_metrics,
)
from eventbook.middleware.rate_limiting import RateLimitMiddleware
from eventbook.utils.cache import close_redis, init_redis

settings = get_settings()

# Configure structured logging
log_handler = logging.StreamHandler()
log_handler.setFormatter(
    JsonFormatter(
        "%(levelname)s %(asctime)s %(name)s %(processName)s %(filename)s %(lineno)d %(message)s",
        rename_fields={"levelname": "level", "asctime": "time", "name": "loggerName"},
    )
)
logging.basicConfig(handlers=[log_handler], level=settings.monitoring.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Connect Redis, check the database and seed the first admin."""
    logger.info("Starting Eventbook API")

    await init_redis(settings.redis.redis_url)

    if db_manager.is_sqlite:
        await db_manager.create_all()

    db_health = await db_manager.health_check()
    if db_health.get("status") == "healthy":
        logger.info("Database connection verified")
    else:
        logger.warning("Database health check failed: %s", db_health.get("message"))

    if settings.FIRST_ADMIN_EMAIL and settings.FIRST_ADMIN_PASSWORD:
        async with db_manager.get_session() as session:
            await user_crud.ensure_admin(
                session,
                email=settings.FIRST_ADMIN_EMAIL,
                password=settings.FIRST_ADMIN_PASSWORD,
            )

    try:
        yield
    finally:
        logger.info("Shutting down Eventbook API")
        await close_redis()
        await db_manager.close()


app = FastAPI(
    title="Eventbook - Event Booking API",
    description="""
    Event catalogue and seat booking with atomic seat inventory.

    * **Events**: browse active events, admins create, edit and retire them
    * **Bookings**: reserve 1 to 10 seats, one active booking per event, cancel before start
    * **Auth**: JWT bearer tokens, `user` and `admin` roles

    All endpoints live under `/api/v1/`. Protected endpoints expect
    `Authorization: Bearer <token>` from `/api/v1/auth/login`.
    """,
    version=settings.VERSION,
    debug=settings.DEBUG,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(MonitoringMiddleware)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.exception_handler(HTTPException)  # type: ignore[misc]
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "HTTPException occurred: %s",
        exc.detail,
        extra={"status_code": exc.status_code, "path": request.url.path},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(BookingError)  # type: ignore[misc]
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    return await http_exception_handler(request, to_http_exception(exc))


@app.exception_handler(Exception)  # type: ignore[misc]
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception occurred: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


@app.get("/", tags=["Health"], summary="API Welcome Message")  # type: ignore[misc]
async def root() -> Dict[str, Any]:
    return {
        "message": "Welcome to the Eventbook API",
        "version": settings.VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
        "openapi": f"{settings.API_V1_PREFIX}/openapi.json",
    }


@app.get("/health", tags=["Health"], summary="Health Check")  # type: ignore[misc]
async def health_check() -> JSONResponse:
    """
    Database and cache status. Responds 503 when either is unavailable.
    """
    result = await get_health_status()
    status_code = (
        status.HTTP_200_OK
        if result["status"] == "healthy"
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )
    return JSONResponse(status_code=status_code, content=result)


@app.get("/metrics", tags=["Health"], summary="Prometheus Metrics")  # type: ignore[misc]
async def metrics() -> PlainTextResponse:
    """
    Prometheus metrics in exposition format.
    """
    if not settings.monitoring.ENABLE_PROMETHEUS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Metrics endpoint is disabled"
        )

    return PlainTextResponse(
        content=await get_prometheus_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
