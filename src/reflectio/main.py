"""Reflectio API application.

Run with ``uvicorn reflectio.main:app``. Schema changes go through
``alembic upgrade head``; the app never creates tables itself.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from reflectio.config import get_settings
from reflectio.connections.router import router as connections_router
from reflectio.database import close_db, init_db
from reflectio.health.router import router as health_router
from reflectio.middleware import setup_middleware
from reflectio.moderation.router import router as moderation_router
from reflectio.posts.router import router as posts_router
from reflectio.premium.router import router as cron_router
from reflectio.redis_client import close_redis, init_redis
from reflectio.users.router import router as users_router

logger = structlog.get_logger()

ROUTERS = (
    health_router,
    posts_router,
    connections_router,
    moderation_router,
    users_router,
    cron_router,
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    await init_db(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )
    await init_redis(settings.redis_url, max_connections=settings.redis_max_connections)
    logger.info(
        "api_started",
        environment=settings.environment,
        version=settings.app_version,
        trusted_level_threshold=settings.trusted_level_threshold,
        classifier_configured=bool(settings.openai_api_key),
    )
    try:
        yield
    finally:
        await close_redis()
        await close_db()
        logger.info("api_stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Reflectio API",
        description="Permissions, premium entitlements and moderation for Reflectio",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    setup_middleware(app, settings)
    for router in ROUTERS:
        app.include_router(router)
    return app


app = create_app()
