"""Domain records consumed by the permission and moderation core.

These are plain immutable records. The storage adapter builds them from
ORM rows; tests build them directly.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class PostStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    MODERATED = "moderated"


class ContentType(str, Enum):
    BOOK = "book"
    FILM = "film"
    PHOTO = "photo"
    THOUGHT = "thought"


class ConnectionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class UserProfile:
    id: str
    is_premium: bool = False
    premium_since: datetime | None = None
    premium_expires_at: datetime | None = None
    current_level: int = 1
    quality_score: int = 0
    full_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None


@dataclass(frozen=True)
class Post:
    id: str
    author_id: str
    title: str = ""
    content: str = ""
    content_type: ContentType = ContentType.THOUGHT
    status: PostStatus = PostStatus.PUBLISHED
    is_premium_content: bool = False
    created_at: datetime | None = None


@dataclass(frozen=True)
class Reflection:
    id: str
    post_id: str
    author_id: str
    content: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class Connection:
    id: str
    requester_id: str
    addressee_id: str
    status: ConnectionStatus = ConnectionStatus.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def involves(self, user_id: str) -> bool:
        """True if the user is either side of the connection."""
        return user_id in (self.requester_id, self.addressee_id)


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
