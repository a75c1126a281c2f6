"""FastAPI application entry point."""
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError
from slowapi.errors import RateLimitExceeded
import redis.asyncio as aioredis

from app.config import settings
from app.database import close_db, get_db
from app.api import claims, submissions
from app.dependencies.submission import get_idempotency_guard, get_provider_gateways
from app.gateways.base import ProviderGateway
from app.middleware import LoggingMiddleware
from app.services.idempotency import RedisIdempotencyGuard
from app.utils.logging_config import setup_logging, get_logger
from app.utils.rate_limit import limiter
from app.exceptions import ClaimRelayException
from app.exception_handlers import (
    claimrelay_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    sqlalchemy_exception_handler,
    rate_limit_exceeded_handler,
    generic_exception_handler,
)

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown events.

    Args:
        app: FastAPI application instance
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(
        "Clearinghouses: " + ", ".join(
            f"{gateway.name} (priority {gateway.priority}, {gateway.timeout_seconds}s)"
            for gateway in get_provider_gateways()
        )
    )

    # Tables are created by Alembic migrations (alembic upgrade head)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")
    for gateway in get_provider_gateways():
        await gateway.close()
    guard = get_idempotency_guard()
    if isinstance(guard, RedisIdempotencyGuard):
        await guard.close()
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Claim lifecycle and insurer submission service with clearinghouse failover",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter state
app.state.limiter = limiter

# Register global exception handlers
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(ClaimRelayException, claimrelay_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

logger.info("Global exception handlers registered")
if settings.RATE_LIMIT_ENABLED:
    logger.info(
        f"Rate limiting enabled - Default: {settings.RATE_LIMIT_DEFAULT}, "
        f"Submit: {settings.RATE_LIMIT_SUBMIT}"
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add GZip compression for responses > 1KB
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Add request/response logging middleware
app.add_middleware(LoggingMiddleware)


async def check_clearinghouses(gateways: List[ProviderGateway]) -> dict:
    """Probe every configured clearinghouse concurrently."""
    results = await asyncio.gather(
        *(gateway.health_check() for gateway in gateways),
        return_exceptions=True,
    )
    providers = [
        {
            "name": gateway.name,
            "priority": gateway.priority,
            "available": result is True,
        }
        for gateway, result in zip(gateways, results)
    ]
    return {
        "available": any(provider["available"] for provider in providers),
        "providers": providers,
    }


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check(
    db: AsyncSession = Depends(get_db),
    gateways: List[ProviderGateway] = Depends(get_provider_gateways),
):
    """
    Comprehensive health check endpoint.

    Checks:
    - Database connectivity
    - Redis connectivity
    - Celery worker availability
    - Clearinghouse availability

    Args:
        db: Database session
        gateways: Configured clearinghouse gateways

    Returns:
        Health status including all system components
    """
    health_status = {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": {
            "connected": False,
            "status": "unknown"
        },
        "redis": {
            "connected": False,
            "status": "unknown"
        },
        "celery": {
            "workers_available": False,
            "status": "unknown"
        },
        "clearinghouses": {
            "available": False,
            "providers": [],
        },
    }

    # Check database connectivity
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        health_status["database"]["connected"] = True
        health_status["database"]["status"] = "healthy"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["database"]["connected"] = False
        health_status["database"]["status"] = f"error: {str(e)}"
        logger.error(f"Health check - database error: {str(e)}")

    # Check Redis connectivity
    try:
        redis_client = aioredis.from_url(settings.REDIS_URL, socket_connect_timeout=2)
        try:
            await redis_client.ping()
        finally:
            await redis_client.aclose()
        health_status["redis"]["connected"] = True
        health_status["redis"]["status"] = "healthy"
    except Exception as e:
        if health_status["status"] == "healthy":
            health_status["status"] = "degraded"
        health_status["redis"]["connected"] = False
        health_status["redis"]["status"] = f"error: {str(e)}"
        logger.warning(f"Health check - Redis error: {str(e)}")

    # Check Celery workers
    try:
        from app.celery_app import celery_app
        inspect = celery_app.control.inspect(timeout=2.0)
        active_workers = await asyncio.to_thread(inspect.active)
        if active_workers and len(active_workers) > 0:
            health_status["celery"]["workers_available"] = True
            health_status["celery"]["status"] = "healthy"
            health_status["celery"]["worker_count"] = len(active_workers)
        else:
            if health_status["status"] == "healthy":
                health_status["status"] = "degraded"
            health_status["celery"]["workers_available"] = False
            health_status["celery"]["status"] = "no workers available"
    except Exception as e:
        if health_status["status"] == "healthy":
            health_status["status"] = "degraded"
        health_status["celery"]["workers_available"] = False
        health_status["celery"]["status"] = f"error: {str(e)}"
        logger.warning(f"Health check - Celery error: {str(e)}")

    # Check clearinghouses; claims still go out as claim forms without them
    health_status["clearinghouses"] = await check_clearinghouses(gateways)
    if not health_status["clearinghouses"]["available"] and health_status["status"] == "healthy":
        health_status["status"] = "degraded"
        logger.warning("Health check - no clearinghouse available")

    # Determine HTTP status code
    status_code = 503 if health_status["status"] == "unhealthy" else 200

    logger.debug(f"Health check completed - status: {health_status['status']}")

    return JSONResponse(
        status_code=status_code,
        content=health_status
    )


@app.get("/", tags=["root"])
async def root():
    """
    Root endpoint.

    Returns:
        Welcome message
    """
    return JSONResponse(
        content={
            "message": f"Welcome to {settings.APP_NAME} API",
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }
    )


# Include routers
app.include_router(claims.router, prefix=settings.API_PREFIX)
app.include_router(submissions.router, prefix=settings.API_PREFIX)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.DEBUG,
        timeout_keep_alive=5,
        timeout_graceful_shutdown=30,
        limit_concurrency=1000,
        limit_max_requests=10000,
    )
