"""Redis cache for per-user permission bundles.

A cache failure is never fatal: reads degrade to a miss, writes and
invalidations are logged and dropped.

Premium bundles carry the subscription's expiry. The entry's TTL never
outlives it, and a read at or past it is treated as a miss, so a lapsed
subscription is re-resolved from storage on the next check.
"""

from __future__ import annotations

import json
import math
from datetime import datetime

import redis.asyncio as redis
import structlog

from reflectio.permissions.decisions import UserPermissions

logger = structlog.get_logger()

KEY_PREFIX = "permissions:"


def cache_key(user_id: str) -> str:
    return f"{KEY_PREFIX}{user_id}"


class PermissionCache:
    """Read-through cache of UserPermissions keyed by user ID."""

    def __init__(self, client: redis.Redis, ttl_seconds: int = 300) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds

    async def get(self, user_id: str, now: datetime | None = None) -> UserPermissions | None:
        try:
            raw = await self.client.get(cache_key(user_id))
        except redis.RedisError as e:
            logger.warning("permission_cache_read_failed", user_id=user_id, error=str(e))
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            valid_until = data.pop("valid_until", None)
            permissions = UserPermissions(**data)
            if valid_until is not None:
                valid_until = datetime.fromisoformat(valid_until)
        except (ValueError, TypeError, AttributeError):
            logger.warning("permission_cache_corrupt", user_id=user_id)
            return None
        if valid_until is not None and now is not None and valid_until <= now:
            return None
        return permissions

    async def set(
        self,
        user_id: str,
        permissions: UserPermissions,
        *,
        valid_until: datetime | None = None,
        now: datetime | None = None,
    ) -> None:
        ttl = self.ttl_seconds
        payload: dict[str, object] = dict(permissions.as_dict())
        if valid_until is not None:
            payload["valid_until"] = valid_until.isoformat()
            if now is not None:
                remaining = math.ceil((valid_until - now).total_seconds())
                if remaining <= 0:
                    return
                ttl = min(ttl, remaining)
        try:
            await self.client.set(cache_key(user_id), json.dumps(payload), ex=ttl)
        except redis.RedisError as e:
            logger.warning("permission_cache_write_failed", user_id=user_id, error=str(e))

    async def invalidate(self, *user_ids: str) -> None:
        if not user_ids:
            return
        try:
            await self.client.delete(*(cache_key(u) for u in user_ids))
        except redis.RedisError as e:
            logger.warning("permission_cache_invalidate_failed", user_ids=list(user_ids), error=str(e))
