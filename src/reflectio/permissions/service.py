"""Permission service: may user U do action A on resource R.

Every public method is total. Infrastructure failures are logged and
turned into a denial (or the most restrictive answer), never raised.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

import structlog

from reflectio.domain import Clock, Post, PostStatus, utc_now
from reflectio.entitlements.resolver import (
    DEFAULT_EXPIRING_SOON_DAYS,
    reconcile_expiration,
    resolve_entitlement,
)
from reflectio.errors import ReflectioError
from reflectio.permissions.cache import PermissionCache
from reflectio.permissions.decisions import (
    CHECK_FAILED,
    CONNECTION_REQUIRES_PREMIUM,
    NOT_PREMIUM,
    POST_NOT_FOUND,
    PREMIUM_CONTENT_REQUIRED,
    REFLECTION_REQUIRES_PREMIUM,
    RESTRICTED,
    UNKNOWN_ACTION,
    PermissionCheck,
    PremiumStatus,
    UserPermissions,
)
from reflectio.storage.base import Storage

logger = structlog.get_logger()


class PermissionService:
    """Single source of truth for content and connection permissions."""

    def __init__(
        self,
        storage: Storage,
        *,
        clock: Clock | None = None,
        cache: PermissionCache | None = None,
        expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
        allow_author_drafts: bool = False,
    ) -> None:
        self.storage = storage
        self.clock = clock or utc_now
        self.cache = cache
        self.expiring_soon_days = expiring_soon_days
        self.allow_author_drafts = allow_author_drafts

    # ------------------------------------------------------------------
    # Internal helpers (these may raise ReflectioError)
    # ------------------------------------------------------------------

    async def _load_permissions(self, user_id: str) -> UserPermissions:
        now = self.clock()
        if self.cache is not None:
            cached = await self.cache.get(user_id, now)
            if cached is not None:
                return cached

        profile = await self.storage.fetch_profile(user_id)
        if profile is None:
            logger.warning("permissions_profile_missing", user_id=user_id)
            return RESTRICTED

        entitlement = resolve_entitlement(profile, now, self.expiring_soon_days)
        permissions = UserPermissions.for_entitlement(entitlement.premium)
        if self.cache is not None:
            valid_until = entitlement.expires_at if entitlement.premium else None
            await self.cache.set(user_id, permissions, valid_until=valid_until, now=now)
        return permissions

    async def _visible_post(self, user_id: str, post_id: str) -> Post | None:
        """The post if this user may see it at all, else None."""
        post = await self.storage.fetch_post(post_id)
        if post is None:
            return None
        if post.status != PostStatus.PUBLISHED:
            if self.allow_author_drafts and post.author_id == user_id:
                return post
            return None
        return post

    def _failed(self, check: str, user_id: str, error: ReflectioError, **context: object) -> PermissionCheck:
        logger.error("permission_check_failed", check=check, user_id=user_id, error=str(error), **context)
        return PermissionCheck.deny(CHECK_FAILED, code="upstream_error")

    def _audit(self, check: str, user_id: str, resource_id: str, result: PermissionCheck) -> PermissionCheck:
        """Record the outcome of a permission decision."""
        logger.info(
            "permission_checked",
            check=check,
            user_id=user_id,
            resource_id=resource_id,
            allowed=result.allowed,
            reason=result.reason,
            upgrade_prompt=result.upgrade_prompt,
        )
        return result

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    async def check_post_access(self, user_id: str, post_id: str) -> PermissionCheck:
        result, _ = await self.check_post_access_with_post(user_id, post_id)
        return result

    async def check_post_access_with_post(self, user_id: str, post_id: str) -> tuple[PermissionCheck, Post | None]:
        """Like ``check_post_access``, also handing back the post it loaded."""
        post: Post | None = None
        try:
            post = await self._visible_post(user_id, post_id)
            if post is None:
                result = PermissionCheck.deny(POST_NOT_FOUND, code="not_found")
            elif not post.is_premium_content or post.author_id == user_id:
                result = PermissionCheck.allow()
            elif (await self._load_permissions(user_id)).can_view_premium_content:
                result = PermissionCheck.allow()
            else:
                result = PermissionCheck.deny(PREMIUM_CONTENT_REQUIRED, upgrade_prompt=True)
        except ReflectioError as e:
            result = self._failed("post_access", user_id, e, post_id=post_id)

        self._audit("post_access", user_id, post_id, result)
        return result, post if result.allowed else None

    async def check_reflection_permission(
        self,
        user_id: str,
        post_id: str,
        *,
        post: Post | None = None,
    ) -> PermissionCheck:
        """Reflections are premium-only, except on the user's own posts.

        ``post`` skips the lookup when the caller already holds the visible post.
        """
        try:
            if post is None or post.id != post_id:
                post = await self._visible_post(user_id, post_id)
            if post is None:
                result = PermissionCheck.deny(POST_NOT_FOUND, code="not_found")
            elif post.author_id == user_id:
                result = PermissionCheck.allow()
            elif (await self._load_permissions(user_id)).is_premium:
                result = PermissionCheck.allow()
            else:
                reason = PREMIUM_CONTENT_REQUIRED if post.is_premium_content else REFLECTION_REQUIRES_PREMIUM
                result = PermissionCheck.deny(reason, upgrade_prompt=True)
        except ReflectioError as e:
            result = self._failed("reflection", user_id, e, post_id=post_id)

        return self._audit("reflection", user_id, post_id, result)

    async def check_connection_permission(
        self,
        user_id: str,
        action: Literal["request", "respond"] | str,
    ) -> PermissionCheck:
        if action == "respond":
            result = PermissionCheck.allow()
        elif action != "request":
            result = PermissionCheck.deny(UNKNOWN_ACTION)
        else:
            try:
                if (await self._load_permissions(user_id)).can_request_connection:
                    result = PermissionCheck.allow()
                else:
                    result = PermissionCheck.deny(CONNECTION_REQUIRES_PREMIUM, upgrade_prompt=True)
            except ReflectioError as e:
                result = self._failed("connection", user_id, e, action=action)

        return self._audit("connection", user_id, action, result)

    # ------------------------------------------------------------------
    # Informational reads
    # ------------------------------------------------------------------

    async def get_user_permissions(self, user_id: str) -> UserPermissions:
        """Capability bundle for UI and other services. Most restrictive on error."""
        try:
            return await self._load_permissions(user_id)
        except ReflectioError as e:
            logger.error("user_permissions_failed", user_id=user_id, error=str(e))
            return RESTRICTED

    async def get_user_premium_status(self, user_id: str) -> PremiumStatus:
        """Resolve entitlement and downgrade the stored flag if it has lapsed."""
        now = self.clock()
        try:
            profile = await self.storage.fetch_profile(user_id)
            if profile is None:
                return NOT_PREMIUM

            entitlement = resolve_entitlement(profile, now, self.expiring_soon_days)
            reconciled = await reconcile_expiration(self.storage, profile, now)
        except ReflectioError as e:
            logger.error("premium_status_failed", user_id=user_id, error=str(e))
            return NOT_PREMIUM

        if reconciled.was_expired:
            await self.invalidate_user_cache(user_id)

        return PremiumStatus(
            is_premium=entitlement.premium,
            expires_at=profile.premium_expires_at,
            since=profile.premium_since,
            was_expired=reconciled.was_expired,
            days_until_expiration=entitlement.days_left,
            expiring_soon=entitlement.expiring,
        )

    async def filter_posts_for_user(
        self,
        posts: Iterable[Post],
        user_id: str,
        *,
        include_own_posts: bool = True,
    ) -> list[Post]:
        """Drop premium posts the user may not view."""
        posts = list(posts)
        permissions = await self.get_user_permissions(user_id)
        if permissions.can_view_premium_content:
            return posts
        return [
            p
            for p in posts
            if not p.is_premium_content or (include_own_posts and p.author_id == user_id)
        ]

    async def invalidate_user_cache(self, user_id: str) -> None:
        if self.cache is not None:
            await self.cache.invalidate(user_id)
