"""Response schemas for the /users/me capability endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class UserPermissionsResponse(BaseModel):
    is_premium: bool
    can_view_premium_content: bool
    can_create_premium_content: bool
    can_request_connection: bool
    requires_mandatory_moderation: bool


class PremiumStatusResponse(BaseModel):
    is_premium: bool
    expires_at: datetime | None = None
    since: datetime | None = None
    was_expired: bool = False
    days_until_expiration: int | None = None
    expiring_soon: bool = False


class LevelResponse(BaseModel):
    level: int
    title: str
    quality_score: int
    points_into_level: int
    points_for_level: int
    progress: float
    next_level: int
    next_title: str
    stored_level: int
