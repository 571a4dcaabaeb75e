"""Batch downgrade of premium users whose subscription has lapsed.

Safe to re-run: a second pass over the same data finds nothing to expire
and issues no write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from reflectio.entitlements.resolver import is_expired
from reflectio.permissions.cache import PermissionCache
from reflectio.storage.base import Storage

logger = structlog.get_logger()


@dataclass(frozen=True)
class SweepReport:
    checked_count: int
    expired_count: int
    ran_at: datetime
    expired_user_ids: list[str] = field(default_factory=list)


async def sweep_expired_premium(
    storage: Storage,
    now: datetime,
    cache: PermissionCache | None = None,
) -> SweepReport:
    """Expire every premium profile whose expiration date is not after ``now``."""
    candidates = await storage.list_premium_profiles_with_expiration()
    expired_ids = [p.id for p in candidates if is_expired(p, now)]

    if expired_ids:
        await storage.expire_profiles(expired_ids)
        if cache is not None:
            await cache.invalidate(*expired_ids)
        logger.info(
            "premium_sweep_expired",
            checked_count=len(candidates),
            expired_count=len(expired_ids),
            user_ids=expired_ids,
        )
    else:
        logger.info("premium_sweep_clean", checked_count=len(candidates))

    return SweepReport(
        checked_count=len(candidates),
        expired_count=len(expired_ids),
        ran_at=now,
        expired_user_ids=expired_ids,
    )
