"""Response schema for the expiration sweep endpoint."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class SweepResponse(BaseModel):
    success: bool = True
    message: str
    checked_count: int
    expired_count: int
    expired_user_ids: list[str]
    timestamp: datetime
