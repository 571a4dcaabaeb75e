"""Request/response schemas for moderation endpoints."""

from __future__ import annotations

from dataclasses import asdict

from pydantic import BaseModel, Field

from reflectio.moderation.policy import ContentKind
from reflectio.moderation.service import ModerationOutcome


class ModerateTextRequest(BaseModel):
    text: str = Field(..., max_length=10_000)
    content_type: ContentKind = ContentKind.TEXT
    post_id: str | None = None
    reflection_id: str | None = None
    is_edit: bool = False


class ModerationResponse(BaseModel):
    flagged: bool
    severity: str
    categories: list[str]
    reason: str
    confidence: float
    moderation_type: str
    user_type: str
    bypassed: bool
    bypass_reason: str | None = None
    suggestions: list[str] = []
    sanitized_text: str | None = None

    @classmethod
    def from_outcome(cls, outcome: ModerationOutcome) -> ModerationResponse:
        data = asdict(outcome)
        data["moderation_type"] = outcome.moderation_type.value
        data["user_type"] = outcome.user_type.value
        return cls(**data)
