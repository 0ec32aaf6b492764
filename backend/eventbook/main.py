"""
Event Booking API - Main Application Entry Point

An event reservation service built around:
- A per-event capacity ledger updated with atomic conditional UPDATEs
- Per-event critical sections so reserve/cancel never interleave
- Role-based authorization (user, organizer, admin) on signed bearer tokens
- Redis caching of public listings with invalidation on every write
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from eventbook.api.middleware import RequestLoggingMiddleware
from eventbook.api.router import api_router
from eventbook.core.config import get_settings
from eventbook.core.errors import register_exception_handlers
from eventbook.core.logging import get_logger, setup_logging
from eventbook.core.metrics import metrics_endpoint
from eventbook.db.session import AsyncSessionLocal
from eventbook.services.admin_service import reconcile_ledger
from eventbook.services.cache_service import close_redis, get_cache_stats, get_redis

settings = get_settings()


async def _reconcile_on_startup(logger) -> None:
    """Repair reserved counts left inconsistent by a crash. Never blocks startup."""
    try:
        async with AsyncSessionLocal() as session:
            checked, corrections = await reconcile_ledger(session)
    except (SQLAlchemyError, OSError) as e:
        logger.error("startup_reconcile_failed", error=str(e))
        return
    logger.info("startup_reconcile_done", events_checked=checked, corrections=len(corrections))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        delete_policy=settings.EVENT_DELETE_POLICY,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    if settings.RECONCILE_LEDGER_ON_STARTUP:
        await _reconcile_on_startup(logger)

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Event booking API with overbooking-safe reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

app.include_router(api_router)

if settings.METRICS_ENABLED:
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
