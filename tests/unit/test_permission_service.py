"""PermissionService: post access, reflections, connections, capability reads."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import structlog
from structlog.testing import capture_logs

from reflectio.domain import Post, PostStatus
from reflectio.errors import NotFoundError, PermissionDeniedError, UpstreamError
from reflectio.permissions.decisions import (
    CHECK_FAILED,
    CONNECTION_REQUIRES_PREMIUM,
    PREMIUM_CONTENT_REQUIRED,
    REFLECTION_REQUIRES_PREMIUM,
    RESTRICTED,
    UNKNOWN_ACTION,
    PermissionCheck,
    UserPermissions,
)
from reflectio.permissions import service as permission_service_module
from reflectio.permissions.cache import PermissionCache, cache_key
from reflectio.permissions.service import PermissionService

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def service(storage, clock):
    return PermissionService(storage, clock=clock)


@pytest.fixture
def seeded(storage):
    storage.add_profile("free")
    storage.add_profile("premium", is_premium=True, premium_expires_at=NOW + timedelta(days=30))
    storage.add_profile("lapsed", is_premium=True, premium_expires_at=datetime(2023, 1, 1, tzinfo=timezone.utc))
    storage.add_profile("author")
    storage.add_post("free-post", "author")
    storage.add_post("premium-post", "author", is_premium_content=True)
    storage.add_post("draft", "author", status=PostStatus.DRAFT)
    return storage


class TestPostAccess:
    @pytest.mark.asyncio
    async def test_free_post_open_to_everyone(self, service, seeded):
        assert (await service.check_post_access("free", "free-post")).allowed is True

    @pytest.mark.asyncio
    async def test_premium_post_denied_for_free_user(self, service, seeded):
        result = await service.check_post_access("free", "premium-post")
        assert result.allowed is False
        assert result.reason == PREMIUM_CONTENT_REQUIRED
        assert result.upgrade_prompt is True

    @pytest.mark.asyncio
    async def test_premium_post_allowed_for_premium_user(self, service, seeded):
        assert (await service.check_post_access("premium", "premium-post")).allowed is True

    @pytest.mark.asyncio
    async def test_author_sees_own_premium_post(self, service, seeded):
        assert (await service.check_post_access("author", "premium-post")).allowed is True

    @pytest.mark.asyncio
    async def test_lapsed_premium_denied(self, service, seeded):
        result = await service.check_post_access("lapsed", "premium-post")
        assert result.allowed is False
        assert result.upgrade_prompt is True

    @pytest.mark.asyncio
    async def test_missing_post(self, service, seeded):
        result = await service.check_post_access("premium", "nope")
        assert result.allowed is False
        assert result.code == "not_found"
        assert result.upgrade_prompt is False

    @pytest.mark.asyncio
    async def test_draft_invisible_even_to_author_by_default(self, service, seeded):
        result = await service.check_post_access("author", "draft")
        assert result.code == "not_found"

    @pytest.mark.asyncio
    async def test_author_drafts_when_enabled(self, storage, clock, seeded):
        service = PermissionService(storage, clock=clock, allow_author_drafts=True)
        assert (await service.check_post_access("author", "draft")).allowed is True
        assert (await service.check_post_access("premium", "draft")).code == "not_found"

    @pytest.mark.asyncio
    async def test_storage_failure_fails_closed(self, service, seeded):
        seeded.fail()
        result = await service.check_post_access("premium", "free-post")
        assert result.allowed is False
        assert result.reason == CHECK_FAILED
        assert result.code == "upstream_error"

    @pytest.mark.asyncio
    async def test_missing_profile_is_restricted(self, service, seeded):
        result = await service.check_post_access("ghost", "premium-post")
        assert result.allowed is False
        assert result.upgrade_prompt is True


class TestPostAccessWithPost:
    @pytest.mark.asyncio
    async def test_returns_loaded_post(self, service, seeded):
        result, post = await service.check_post_access_with_post("premium", "premium-post")
        assert result.allowed is True
        assert post == seeded.posts["premium-post"]

    @pytest.mark.asyncio
    async def test_denied_returns_no_post(self, service, seeded):
        result, post = await service.check_post_access_with_post("free", "premium-post")
        assert result.allowed is False
        assert post is None

    @pytest.mark.asyncio
    async def test_reflection_check_reuses_loaded_post(self, service, seeded):
        _, post = await service.check_post_access_with_post("author", "free-post")
        seeded.fail()
        assert (await service.check_reflection_permission("author", "free-post", post=post)).allowed is True


class TestReflectionPermission:
    @pytest.mark.asyncio
    async def test_premium_user_may_reflect(self, service, seeded):
        assert (await service.check_reflection_permission("premium", "free-post")).allowed is True

    @pytest.mark.asyncio
    async def test_free_user_on_free_post(self, service, seeded):
        result = await service.check_reflection_permission("free", "free-post")
        assert result.allowed is False
        assert result.reason == REFLECTION_REQUIRES_PREMIUM
        assert result.upgrade_prompt is True

    @pytest.mark.asyncio
    async def test_free_user_on_premium_post(self, service, seeded):
        result = await service.check_reflection_permission("free", "premium-post")
        assert result.reason == PREMIUM_CONTENT_REQUIRED

    @pytest.mark.asyncio
    async def test_author_reflects_on_own_post(self, service, seeded):
        assert (await service.check_reflection_permission("author", "free-post")).allowed is True

    @pytest.mark.asyncio
    async def test_missing_post(self, service, seeded):
        result = await service.check_reflection_permission("premium", "nope")
        assert result.code == "not_found"


class TestConnectionPermission:
    @pytest.mark.asyncio
    async def test_respond_always_allowed(self, service, seeded):
        assert (await service.check_connection_permission("free", "respond")).allowed is True

    @pytest.mark.asyncio
    async def test_request_requires_premium(self, service, seeded):
        result = await service.check_connection_permission("free", "request")
        assert result.allowed is False
        assert result.reason == CONNECTION_REQUIRES_PREMIUM
        assert result.upgrade_prompt is True

    @pytest.mark.asyncio
    async def test_premium_may_request(self, service, seeded):
        assert (await service.check_connection_permission("premium", "request")).allowed is True

    @pytest.mark.asyncio
    async def test_unknown_action(self, service, seeded):
        result = await service.check_connection_permission("premium", "block")
        assert result.allowed is False
        assert result.reason == UNKNOWN_ACTION

    @pytest.mark.asyncio
    async def test_respond_does_not_touch_storage(self, service, seeded):
        seeded.fail()
        assert (await service.check_connection_permission("free", "respond")).allowed is True


class TestUserPermissions:
    @pytest.mark.asyncio
    async def test_premium_bundle(self, service, seeded):
        result = await service.get_user_permissions("premium")
        assert result == UserPermissions.for_entitlement(True)
        assert result.requires_mandatory_moderation is False

    @pytest.mark.asyncio
    async def test_free_bundle(self, service, seeded):
        assert await service.get_user_permissions("free") == RESTRICTED

    @pytest.mark.asyncio
    async def test_storage_failure_gives_restricted(self, service, seeded):
        seeded.fail()
        result = await service.get_user_permissions("premium")
        assert result == RESTRICTED
        assert result.requires_mandatory_moderation is True

    @pytest.mark.asyncio
    async def test_cached_bundle_skips_storage(self, storage, clock, seeded):
        cache = AsyncMock()
        cache.get.return_value = UserPermissions.for_entitlement(True)
        service = PermissionService(storage, clock=clock, cache=cache)
        seeded.fail()
        assert (await service.get_user_permissions("free")).is_premium is True

    @pytest.mark.asyncio
    async def test_cache_miss_populates(self, storage, clock, seeded):
        cache = AsyncMock()
        cache.get.return_value = None
        service = PermissionService(storage, clock=clock, cache=cache)
        await service.get_user_permissions("premium")
        cache.set.assert_awaited_once_with(
            "premium",
            UserPermissions.for_entitlement(True),
            valid_until=NOW + timedelta(days=30),
            now=NOW,
        )

    @pytest.mark.asyncio
    async def test_free_bundle_cached_without_expiry(self, storage, clock, seeded):
        cache = AsyncMock()
        cache.get.return_value = None
        service = PermissionService(storage, clock=clock, cache=cache)
        await service.get_user_permissions("free")
        cache.set.assert_awaited_once_with("free", RESTRICTED, valid_until=None, now=NOW)


class TestPremiumStatus:
    @pytest.mark.asyncio
    async def test_active(self, service, seeded):
        status = await service.get_user_premium_status("premium")
        assert status.is_premium is True
        assert status.was_expired is False
        assert status.days_until_expiration == 30
        assert status.expiring_soon is False
        assert seeded.update_calls == []

    @pytest.mark.asyncio
    async def test_lapsed_is_reconciled(self, service, seeded):
        status = await service.get_user_premium_status("lapsed")
        assert status.is_premium is False
        assert status.was_expired is True
        assert seeded.update_calls == [("lapsed", {"is_premium": False})]

    @pytest.mark.asyncio
    async def test_lapsed_invalidates_cache(self, storage, clock, seeded):
        cache = AsyncMock()
        service = PermissionService(storage, clock=clock, cache=cache)
        await service.get_user_premium_status("lapsed")
        cache.invalidate.assert_awaited_once_with("lapsed")

    @pytest.mark.asyncio
    async def test_missing_profile(self, service, seeded):
        assert (await service.get_user_premium_status("ghost")).is_premium is False

    @pytest.mark.asyncio
    async def test_failure_fails_closed(self, service, seeded):
        seeded.fail()
        assert (await service.get_user_premium_status("premium")).is_premium is False


class TestFilterPosts:
    def _posts(self):
        return [
            Post(id="a", author_id="author"),
            Post(id="b", author_id="author", is_premium_content=True),
            Post(id="c", author_id="free", is_premium_content=True),
        ]

    @pytest.mark.asyncio
    async def test_premium_sees_all(self, service, seeded):
        result = await service.filter_posts_for_user(self._posts(), "premium")
        assert [p.id for p in result] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_free_keeps_free_and_own(self, service, seeded):
        result = await service.filter_posts_for_user(self._posts(), "free")
        assert [p.id for p in result] == ["a", "c"]

    @pytest.mark.asyncio
    async def test_exclude_own(self, service, seeded):
        result = await service.filter_posts_for_user(self._posts(), "free", include_own_posts=False)
        assert [p.id for p in result] == ["a"]

    @pytest.mark.asyncio
    async def test_failure_keeps_only_free(self, service, seeded):
        seeded.fail()
        result = await service.filter_posts_for_user(self._posts(), "premium")
        assert [p.id for p in result] == ["a"]


class TestPermissionCheck:
    def test_allowed_does_not_raise(self):
        PermissionCheck.allow().raise_if_denied()

    def test_not_found(self):
        with pytest.raises(NotFoundError):
            PermissionCheck.deny("gone", code="not_found").raise_if_denied()

    def test_upstream(self):
        with pytest.raises(UpstreamError):
            PermissionCheck.deny(CHECK_FAILED, code="upstream_error").raise_if_denied()

    def test_denied_carries_upgrade_prompt(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            PermissionCheck.deny("pay up", upgrade_prompt=True).raise_if_denied()
        assert exc_info.value.upgrade_prompt is True
        assert exc_info.value.message == "pay up"


class DictRedis:
    """Just enough of redis.asyncio.Redis for PermissionCache."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value, ex=None):
        self.values[key] = value
        self.ttls[key] = ex

    async def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)


class TestCachedEntitlementExpiry:
    @pytest.fixture
    def now(self):
        return {"value": NOW}

    @pytest.fixture
    def redis_client(self):
        return DictRedis()

    @pytest.fixture
    def service(self, storage, now, redis_client):
        storage.add_profile("short", is_premium=True, premium_expires_at=NOW + timedelta(seconds=60))
        storage.add_post("premium-post", "author", is_premium_content=True)
        cache = PermissionCache(redis_client, ttl_seconds=300)
        return PermissionService(storage, clock=lambda: now["value"], cache=cache)

    @pytest.mark.asyncio
    async def test_warm_cache_does_not_outlive_subscription(self, service, now, redis_client):
        assert (await service.check_post_access("short", "premium-post")).allowed is True
        assert redis_client.ttls[cache_key("short")] == 60

        now["value"] = NOW + timedelta(seconds=120)
        result = await service.check_post_access("short", "premium-post")
        assert result.allowed is False
        assert result.upgrade_prompt is True
        assert (await service.get_user_permissions("short")).is_premium is False
        assert (await service.check_connection_permission("short", "request")).allowed is False

    @pytest.mark.asyncio
    async def test_warm_cache_reused_before_expiry(self, service, storage, now):
        await service.check_post_access("short", "premium-post")
        storage.fail()
        now["value"] = NOW + timedelta(seconds=30)
        assert (await service.get_user_permissions("short")).is_premium is True


class TestPermissionAudit:
    @pytest.fixture(autouse=True)
    def fresh_logger(self, monkeypatch):
        monkeypatch.setattr(permission_service_module, "logger", structlog.get_logger())

    @staticmethod
    def _audits(logs):
        return [entry for entry in logs if entry["event"] == "permission_checked"]

    @pytest.mark.asyncio
    async def test_denial_is_recorded(self, service, seeded):
        with capture_logs() as logs:
            await service.check_post_access("free", "premium-post")
        assert self._audits(logs) == [
            {
                "event": "permission_checked",
                "log_level": "info",
                "check": "post_access",
                "user_id": "free",
                "resource_id": "premium-post",
                "allowed": False,
                "reason": PREMIUM_CONTENT_REQUIRED,
                "upgrade_prompt": True,
            }
        ]

    @pytest.mark.asyncio
    async def test_grant_is_recorded(self, service, seeded):
        with capture_logs() as logs:
            await service.check_reflection_permission("premium", "free-post")
        [entry] = self._audits(logs)
        assert entry["check"] == "reflection"
        assert entry["allowed"] is True
        assert entry["reason"] is None

    @pytest.mark.asyncio
    async def test_connection_check_is_recorded(self, service, seeded):
        with capture_logs() as logs:
            await service.check_connection_permission("free", "request")
        [entry] = self._audits(logs)
        assert entry["check"] == "connection"
        assert entry["resource_id"] == "request"
        assert entry["reason"] == CONNECTION_REQUIRES_PREMIUM

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self, service, seeded):
        seeded.fail()
        with capture_logs() as logs:
            await service.check_post_access("premium", "free-post")
        events = [entry["event"] for entry in logs]
        assert events == ["permission_check_failed", "permission_checked"]
        assert self._audits(logs)[0]["reason"] == CHECK_FAILED
