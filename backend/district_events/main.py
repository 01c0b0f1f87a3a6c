"""
District Events API - Main Application Entry Point

Event registration backend for a church district:
- Capacity reservation with a single conditional update (no overselling)
- Registration workflow with a compensating release on ledger failure
- Background sweeper that releases expired payment holds
- Redis caching of the public event listing
- Structured logging with request correlation and Prometheus metrics
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from district_events.api.middleware import RequestLoggingMiddleware
from district_events.api.router import api_router
from district_events.core.config import get_settings
from district_events.core.exceptions import register_exception_handlers
from district_events.core.logging import get_logger, setup_logging
from district_events.core.metrics import metrics_endpoint
from district_events.db.session import async_session_factory
from district_events.services.auth_service import ensure_first_admin
from district_events.services.cache_service import close_redis, get_cache_stats, get_redis
from district_events.services.hold_sweeper import run_sweeper
from district_events.services.strategy_factory import close_notifier

settings = get_settings()


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
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    try:
        async with async_session_factory() as db:
            await ensure_first_admin(db)
    except Exception as e:
        logger.error("first_admin_bootstrap_failed", error=str(e))

    stop_sweeper = asyncio.Event()
    sweeper_task: Optional[asyncio.Task] = None
    if settings.SWEEPER_ENABLED:
        sweeper_task = asyncio.create_task(run_sweeper(async_session_factory, stop_sweeper))

    yield

    stop_sweeper.set()
    if sweeper_task is not None:
        try:
            await asyncio.wait_for(sweeper_task, timeout=10)
        except asyncio.TimeoutError:
            sweeper_task.cancel()
            logger.warning("hold_sweeper_cancelled")

    await close_notifier()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Church district event registration API with oversell-safe reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Routes
app.include_router(api_router)
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
