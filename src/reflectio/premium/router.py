"""Scheduler-facing router: /api/v1/cron/* endpoints.

Called by an external scheduler with ``Authorization: Bearer <cron secret>``.
The arq worker runs the same sweep on its own schedule.
"""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Header, HTTPException

from reflectio.config import Settings, get_settings
from reflectio.dependencies import get_clock, get_permission_cache, get_storage
from reflectio.domain import Clock
from reflectio.permissions.cache import PermissionCache
from reflectio.premium.schemas import SweepResponse
from reflectio.premium.sweep import sweep_expired_premium
from reflectio.storage.base import Storage

router = APIRouter(prefix="/api/v1/cron", tags=["Cron"])


def require_cron_secret(
    authorization: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = f"Bearer {settings.cron_secret}"
    if authorization is None or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.api_route(
    "/check-premium-expirations",
    methods=["GET", "POST"],
    response_model=SweepResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def check_premium_expirations(
    storage: Storage = Depends(get_storage),
    clock: Clock = Depends(get_clock),
    cache: PermissionCache | None = Depends(get_permission_cache),
) -> SweepResponse:
    report = await sweep_expired_premium(storage, clock(), cache)
    return SweepResponse(
        message="Premium expiration check complete",
        checked_count=report.checked_count,
        expired_count=report.expired_count,
        expired_user_ids=report.expired_user_ids,
        timestamp=report.ran_at,
    )
