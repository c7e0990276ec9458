"""
FastAPI application factory
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import sentry_sdk

from app.core.config import get_settings
from app.core.logging_config import setup_logging
from app.core.redis_client import get_redis_client
from app.core.rate_limit import RateLimitMiddleware
from app.api.v1.router import api_router
from app.domain.exceptions import AuthFlowError, ValidationError

logger = logging.getLogger(__name__)

# Initialize Sentry before app creation
settings = get_settings()
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.APP_ENV,
        send_default_pii=False,
        traces_sample_rate=1.0,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    setup_logging()

    redis_client = get_redis_client()
    try:
        await redis_client.ping()
        logger.info("Connected to Redis for signup staging")
    except Exception as e:
        logger.error(f"Redis unavailable at startup, signup requests will fail until it is reachable: {e}")

    logger.info("Application startup complete")

    yield

    # Shutdown
    await redis_client.aclose()
    logger.info("Disconnected from Redis")

    logger.info("Application shutdown complete")


async def auth_flow_error_handler(request: Request, exc: AuthFlowError) -> JSONResponse:
    """Render domain errors as {"detail", "error_code"}"""
    content = {"detail": exc.message, "error_code": exc.error_code}
    if isinstance(exc, ValidationError):
        content["violations"] = exc.violations

    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.error_code}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=content)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
    )

    app.add_exception_handler(AuthFlowError, auth_flow_error_handler)

    # Rate Limiting Middleware (added first, processed last in middleware chain)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
        otp_per_minute=settings.OTP_RATE_LIMIT_PER_MINUTE
    )

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # GZip Middleware
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Include API router
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.APP_ENV
        }

    return app
