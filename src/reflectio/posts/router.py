"""Post and reflection router: all /api/v1/posts/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from reflectio.auth.dependencies import get_current_user_id
from reflectio.config import Settings, get_settings
from reflectio.dependencies import get_moderation_service, get_permission_service, get_storage
from reflectio.domain import Post, Reflection
from reflectio.errors import ValidationError
from reflectio.moderation.policy import ModerationContext, ModerationRequest
from reflectio.moderation.schemas import ModerationResponse
from reflectio.moderation.service import ModerationService
from reflectio.permissions.service import PermissionService
from reflectio.posts.schemas import (
    PostResponse,
    ReflectionCreateRequest,
    ReflectionListResponse,
    ReflectionResponse,
)
from reflectio.storage.base import Storage

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/posts", tags=["Posts"])

CONTENT_BLOCKED = "Content blocked for violating our guidelines"


def _post_response(post: Post, *, can_reflect: bool, upgrade_prompt: bool) -> PostResponse:
    return PostResponse(
        id=post.id,
        author_id=post.author_id,
        title=post.title,
        content=post.content,
        content_type=post.content_type.value,
        status=post.status.value,
        is_premium_content=post.is_premium_content,
        created_at=post.created_at,
        can_reflect=can_reflect,
        reflect_upgrade_prompt=upgrade_prompt,
    )


def _reflection_response(reflection: Reflection) -> ReflectionResponse:
    return ReflectionResponse.model_validate(reflection)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    permissions: PermissionService = Depends(get_permission_service),
) -> PostResponse:
    """Get a post the caller may view, with whether they may reflect on it."""
    access, post = await permissions.check_post_access_with_post(user_id, post_id)
    access.raise_if_denied()

    reflect = await permissions.check_reflection_permission(user_id, post_id, post=post)
    return _post_response(post, can_reflect=reflect.allowed, upgrade_prompt=reflect.upgrade_prompt)


@router.get("/{post_id}/reflections", response_model=ReflectionListResponse)
async def list_reflections(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    permissions: PermissionService = Depends(get_permission_service),
    storage: Storage = Depends(get_storage),
) -> ReflectionListResponse:
    access = await permissions.check_post_access(user_id, post_id)
    access.raise_if_denied()

    reflections = await storage.list_reflections(post_id)
    return ReflectionListResponse(
        reflections=[_reflection_response(r) for r in reflections],
        total=len(reflections),
    )


@router.post("/{post_id}/reflections", response_model=ReflectionResponse, status_code=201)
async def create_reflection(
    post_id: str,
    body: ReflectionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    permissions: PermissionService = Depends(get_permission_service),
    moderation: ModerationService = Depends(get_moderation_service),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> ReflectionResponse | JSONResponse:
    """Create a reflection: permission gate, then moderation, then insert."""
    if not body.content:
        raise ValidationError("Reflection content is required")
    if len(body.content) > settings.reflection_max_length:
        raise ValidationError(f"Reflection must be at most {settings.reflection_max_length} characters")

    check = await permissions.check_reflection_permission(user_id, post_id)
    check.raise_if_denied()

    outcome = await moderation.moderate(
        ModerationRequest(
            user_id=user_id,
            content=body.content,
            context=ModerationContext(post_id=post_id),
        )
    )
    if outcome.flagged:
        return JSONResponse(
            status_code=400,
            content={
                "detail": CONTENT_BLOCKED,
                "code": "content_flagged",
                "moderation": ModerationResponse.from_outcome(outcome).model_dump(),
            },
        )

    reflection = await storage.insert_reflection(post_id, user_id, body.content)
    logger.info("reflection_created", reflection_id=reflection.id, post_id=post_id, user_id=user_id)
    return _reflection_response(reflection)
