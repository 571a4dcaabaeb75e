"""Request/response schemas for post and reflection endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    author_id: str
    title: str
    content: str
    content_type: str
    status: str
    is_premium_content: bool
    created_at: datetime | None = None
    can_reflect: bool = False
    reflect_upgrade_prompt: bool = False


class ReflectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    post_id: str
    author_id: str
    content: str
    created_at: datetime | None = None


class ReflectionListResponse(BaseModel):
    reflections: list[ReflectionResponse]
    total: int


class ReflectionCreateRequest(BaseModel):
    """Create a reflection. Length is checked against settings after trimming."""

    content: str = Field(..., max_length=10_000)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        return v.strip()
