"""Storage collaborator interface.

Absence is reported as ``None``. Failures are reported with the closed set
of errors from :mod:`reflectio.errors`: ``NotFoundError`` for writes that
target a missing row, ``ConflictError`` for uniqueness violations and
``UpstreamError`` for everything else.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Literal

from reflectio.domain import Connection, ConnectionStatus, Post, Reflection, UserProfile

ConnectionListKind = Literal["all", "sent", "received", "connected"]


class Storage(ABC):
    """Abstract storage backend used by the core services."""

    # --- Profiles ---

    @abstractmethod
    async def fetch_profile(self, user_id: str) -> UserProfile | None:
        """Fetch a profile by user ID."""
        ...

    @abstractmethod
    async def update_profile(self, user_id: str, patch: dict[str, Any]) -> None:
        """Apply a partial update to a profile."""
        ...

    @abstractmethod
    async def list_premium_profiles_with_expiration(self) -> list[UserProfile]:
        """All profiles with is_premium=True and a non-null expiration."""
        ...

    @abstractmethod
    async def expire_profiles(self, user_ids: Sequence[str]) -> int:
        """Set is_premium=False for all given users in one update. Returns rows touched."""
        ...

    # --- Posts & reflections ---

    @abstractmethod
    async def fetch_post(self, post_id: str) -> Post | None:
        """Fetch a post by ID, whatever its status."""
        ...

    @abstractmethod
    async def insert_reflection(self, post_id: str, author_id: str, content: str) -> Reflection:
        """Create a reflection on a post."""
        ...

    @abstractmethod
    async def list_reflections(self, post_id: str) -> list[Reflection]:
        """Reflections of a post, oldest first."""
        ...

    # --- Connections ---

    @abstractmethod
    async def fetch_connection(self, connection_id: str) -> Connection | None:
        """Fetch a connection row by ID."""
        ...

    @abstractmethod
    async def find_connection_between(self, user_a: str, user_b: str) -> Connection | None:
        """Find the connection row for an unordered pair, in either direction."""
        ...

    @abstractmethod
    async def insert_connection(self, requester_id: str, addressee_id: str) -> Connection:
        """Insert a pending connection. Raises ConflictError if the pair already has a row."""
        ...

    @abstractmethod
    async def update_connection(self, connection_id: str, status: ConnectionStatus) -> Connection:
        """Set a connection's status."""
        ...

    @abstractmethod
    async def delete_connection(self, connection_id: str) -> None:
        """Delete a connection row."""
        ...

    @abstractmethod
    async def list_connections(self, user_id: str, kind: ConnectionListKind = "all") -> list[Connection]:
        """Connections involving the user, filtered by kind."""
        ...
