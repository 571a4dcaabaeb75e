"""arq worker for the premium expiration sweep.

Import path for arq CLI: arq reflectio.workers.expiration_worker.WorkerSettings
"""

from __future__ import annotations

from datetime import datetime, timezone

import redis.asyncio as aioredis
import structlog
from arq import cron
from arq.connections import RedisSettings

from reflectio.config import get_settings
from reflectio.database import close_db, init_db, session_scope
from reflectio.middleware.logging import setup_logging
from reflectio.permissions.cache import PermissionCache
from reflectio.premium.sweep import SweepReport, sweep_expired_premium
from reflectio.storage.sql import SqlStorage

logger = structlog.get_logger()


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize Redis + DB connections on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url, pool_size=2, max_overflow=0)
    ctx["redis"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=5,
    )
    logger.info("expiration_worker_started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("expiration_worker_stopped")


async def check_premium_expirations(ctx: dict) -> SweepReport:  # type: ignore[type-arg]
    """Scheduled arq task: downgrade every lapsed premium subscription."""
    settings = get_settings()
    cache = PermissionCache(ctx["redis"], settings.permission_cache_ttl_seconds)
    async with session_scope() as db:
        return await sweep_expired_premium(SqlStorage(db), datetime.now(timezone.utc), cache)


class WorkerSettings:
    """arq worker settings for the expiration sweep."""

    functions = [check_premium_expirations]
    cron_jobs = [
        cron(check_premium_expirations, minute=get_settings().expiration_sweep_minute, run_at_startup=False),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    on_startup = startup
    on_shutdown = shutdown
    max_jobs = 1
    job_timeout = 300
