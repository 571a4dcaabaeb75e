"""Request/response schemas for connection endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ConnectionCreateRequest(BaseModel):
    addressee_id: str = Field(..., min_length=1)


class ConnectionUpdateRequest(BaseModel):
    action: Literal["accept", "decline", "cancel"]


class ConnectionResponse(BaseModel):
    id: str
    requester_id: str
    addressee_id: str
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ConnectionListResponse(BaseModel):
    connections: list[ConnectionResponse]
    total: int


class ConnectionActionResponse(BaseModel):
    type: str
    label: str
    enabled: bool
    requires_upgrade: bool


class ConnectionActionsResponse(BaseModel):
    target_user_id: str
    status: str
    actions: list[ConnectionActionResponse]


class ConnectionLimitationsResponse(BaseModel):
    can_request: bool
    can_respond: bool
    limitations: list[str]
    upgrade_prompt: bool


class MessageResponse(BaseModel):
    message: str
