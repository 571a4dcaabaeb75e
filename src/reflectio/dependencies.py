"""Shared FastAPI dependencies.

Services are built per request from process-wide resources (engine,
Redis pool). Tests swap ``get_storage``, ``get_clock``,
``get_permission_cache`` and ``get_classifier`` through
``app.dependency_overrides``.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reflectio.config import Settings, get_settings
from reflectio.connections.permissions import ConnectionPermissionManager
from reflectio.connections.service import ConnectionService
from reflectio.database import get_session
from reflectio.domain import Clock, utc_now
from reflectio.moderation.classifier import BaseClassifier, OpenAIModerationClassifier
from reflectio.moderation.policy import ModerationPolicy
from reflectio.moderation.service import ModerationService
from reflectio.permissions.cache import PermissionCache
from reflectio.permissions.service import PermissionService
from reflectio.redis_client import optional_redis
from reflectio.storage.base import Storage
from reflectio.storage.sql import SqlStorage


def get_clock() -> Clock:
    return utc_now


async def get_storage(db: AsyncSession = Depends(get_session)) -> Storage:  # noqa: B008
    return SqlStorage(db)


def get_permission_cache(settings: Settings = Depends(get_settings)) -> PermissionCache | None:  # noqa: B008
    client = optional_redis()
    if client is None:
        return None
    return PermissionCache(client, settings.permission_cache_ttl_seconds)


def get_permission_service(
    storage: Storage = Depends(get_storage),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
    cache: PermissionCache | None = Depends(get_permission_cache),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> PermissionService:
    return PermissionService(
        storage,
        clock=clock,
        cache=cache,
        expiring_soon_days=settings.expiring_soon_days,
        allow_author_drafts=settings.allow_author_drafts,
    )


def get_connection_manager(
    permissions: PermissionService = Depends(get_permission_service),  # noqa: B008
) -> ConnectionPermissionManager:
    return ConnectionPermissionManager(permissions)


def get_connection_service(
    storage: Storage = Depends(get_storage),  # noqa: B008
    manager: ConnectionPermissionManager = Depends(get_connection_manager),  # noqa: B008
) -> ConnectionService:
    return ConnectionService(storage, manager)


def get_classifier(settings: Settings = Depends(get_settings)) -> BaseClassifier:  # noqa: B008
    return OpenAIModerationClassifier(
        api_key=settings.openai_api_key,
        url=settings.openai_moderation_url,
        model=settings.openai_moderation_model,
        timeout=settings.classifier_timeout_seconds,
    )


def get_moderation_service(
    storage: Storage = Depends(get_storage),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
    classifier: BaseClassifier = Depends(get_classifier),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> ModerationService:
    policy = ModerationPolicy(storage, clock=clock, trusted_level_threshold=settings.trusted_level_threshold)
    return ModerationService(policy, classifier, blocked_words=settings.moderation_blocked_words)
