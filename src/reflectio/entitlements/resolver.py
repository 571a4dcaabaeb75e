"""Effective premium entitlement derived from raw profile state.

``resolve_entitlement`` and ``is_expired`` are pure and never write.
``reconcile_expiration`` is the only function here with a side effect:
it downgrades a stored profile whose premium period has ended.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from reflectio.domain import UserProfile
from reflectio.storage.base import Storage

logger = structlog.get_logger()

DEFAULT_EXPIRING_SOON_DAYS = 7
_SECONDS_PER_DAY = timedelta(days=1).total_seconds()


@dataclass(frozen=True)
class Entitlement:
    premium: bool
    expiring: bool = False
    expires_at: datetime | None = None
    days_left: int | None = None


@dataclass(frozen=True)
class ReconcileResult:
    is_premium: bool
    was_expired: bool
    expires_at: datetime | None = None


def _signed_days_until(expires_at: datetime, now: datetime) -> int:
    """Whole days until expiry, rounded up. Zero or negative once passed."""
    return math.ceil((expires_at - now).total_seconds() / _SECONDS_PER_DAY)


def days_until_expiration(expires_at: datetime | None, now: datetime) -> int | None:
    """Days left on a subscription, never negative. None means no expiry."""
    if expires_at is None:
        return None
    return max(0, _signed_days_until(expires_at, now))


def is_expired(profile: UserProfile, now: datetime) -> bool:
    """True when the stored premium flag outlived its expiration date."""
    return (
        profile.is_premium
        and profile.premium_expires_at is not None
        and profile.premium_expires_at <= now
    )


def resolve_entitlement(
    profile: UserProfile,
    now: datetime,
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
) -> Entitlement:
    """Compute the effective entitlement of a profile at ``now``."""
    if not profile.is_premium:
        return Entitlement(premium=False, expires_at=profile.premium_expires_at)

    expires_at = profile.premium_expires_at
    if expires_at is None:
        return Entitlement(premium=True)

    if is_expired(profile, now):
        return Entitlement(premium=False, expires_at=expires_at, days_left=0)

    days_left = _signed_days_until(expires_at, now)
    return Entitlement(
        premium=True,
        expiring=days_left <= expiring_soon_days,
        expires_at=expires_at,
        days_left=days_left,
    )


async def reconcile_expiration(
    storage: Storage,
    profile: UserProfile,
    now: datetime,
) -> ReconcileResult:
    """Downgrade an expired premium profile in storage.

    Issues at most one write, and only when the profile is expired.
    Storage errors propagate to the caller.
    """
    if not is_expired(profile, now):
        return ReconcileResult(
            is_premium=profile.is_premium,
            was_expired=False,
            expires_at=profile.premium_expires_at,
        )

    await storage.update_profile(profile.id, {"is_premium": False})
    logger.info(
        "premium_expired_on_read",
        user_id=profile.id,
        expired_at=profile.premium_expires_at.isoformat(),
    )
    return ReconcileResult(
        is_premium=False,
        was_expired=True,
        expires_at=profile.premium_expires_at,
    )
