"""Moderation router: /api/v1/moderation/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from reflectio.auth.dependencies import get_current_user_id
from reflectio.dependencies import get_moderation_service
from reflectio.moderation.policy import ModerationContext, ModerationRequest
from reflectio.moderation.schemas import ModerateTextRequest, ModerationResponse
from reflectio.moderation.service import ModerationService

router = APIRouter(prefix="/api/v1/moderation", tags=["Moderation"])


@router.post("/text", response_model=ModerationResponse)
async def moderate_text(
    body: ModerateTextRequest,
    user_id: str = Depends(get_current_user_id),
    moderation: ModerationService = Depends(get_moderation_service),
) -> ModerationResponse:
    """Pre-check a text before submitting it. 503 if the classifier is down."""
    outcome = await moderation.moderate(
        ModerationRequest(
            user_id=user_id,
            content=body.text,
            content_type=body.content_type,
            context=ModerationContext(
                post_id=body.post_id,
                reflection_id=body.reflection_id,
                is_edit=body.is_edit,
            ),
        )
    )
    return ModerationResponse.from_outcome(outcome)
