"""Liveness, readiness and version probes. Exempt from rate limiting."""

from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from reflectio.config import Settings, get_settings
from reflectio.database import get_session
from reflectio.redis_client import get_redis

router = APIRouter(tags=["Health"])


async def _probe(check: Callable[[], Awaitable[object]]) -> str:
    try:
        await check()
    except Exception as exc:  # noqa: BLE001
        return f"error: {exc}"
    return "ok"


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> dict[str, object]:
    """Storage and cache must answer. A missing classifier key only degrades."""
    checks = {
        "database": await _probe(lambda: db.execute(text("SELECT 1"))),
        "redis": await _probe(lambda: get_redis().ping()),
    }
    ready = all(v == "ok" for v in checks.values())
    checks["classifier"] = "configured" if settings.openai_api_key else "missing api key"
    return {"status": "ready" if ready else "degraded", "checks": checks}


@router.get("/version")
async def version(settings: Settings = Depends(get_settings)) -> dict[str, str]:  # noqa: B008
    return {
        "service": "reflectio-api",
        "version": settings.app_version,
        "environment": settings.environment,
    }
