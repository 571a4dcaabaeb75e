"""SQLAlchemy implementation of the storage collaborator.

Each write commits its own unit of work, mirroring how the hosted backend
autocommits single calls. Database exceptions are translated into the
closed error set so callers never branch on driver error codes.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reflectio.db.models import ConnectionRow, PostRow, Profile, ReflectionRow
from reflectio.domain import (
    Connection,
    ConnectionStatus,
    ContentType,
    Post,
    PostStatus,
    Reflection,
    UserProfile,
)
from reflectio.errors import ConflictError, NotFoundError, UpstreamError
from reflectio.storage.base import ConnectionListKind, Storage

logger = structlog.get_logger()

# Columns of `profiles` this service is allowed to patch
_PROFILE_PATCHABLE = frozenset({"is_premium", "premium_since", "premium_expires_at"})


def _to_profile(row: Profile) -> UserProfile:
    return UserProfile(
        id=row.id,
        is_premium=bool(row.is_premium),
        premium_since=row.premium_since,
        premium_expires_at=row.premium_expires_at,
        current_level=row.current_level or 1,
        quality_score=row.quality_score or 0,
        full_name=row.full_name,
        username=row.username,
        avatar_url=row.avatar_url,
    )


def _to_post(row: PostRow) -> Post:
    return Post(
        id=row.id,
        author_id=row.author_id,
        title=row.title,
        content=row.content,
        content_type=ContentType(row.type),
        status=PostStatus(row.status),
        is_premium_content=bool(row.is_premium_content),
        created_at=row.created_at,
    )


def _to_reflection(row: ReflectionRow) -> Reflection:
    return Reflection(
        id=row.id,
        post_id=row.post_id,
        author_id=row.author_id,
        content=row.content,
        created_at=row.created_at,
    )


def _to_connection(row: ConnectionRow) -> Connection:
    return Connection(
        id=row.id,
        requester_id=row.requester_id,
        addressee_id=row.addressee_id,
        status=ConnectionStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlStorage(Storage):
    """Storage backed by an AsyncSession (one per request)."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @asynccontextmanager
    async def _guard(self, operation: str, *, write: bool = False) -> AsyncIterator[None]:
        try:
            yield
            if write:
                await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("storage_conflict", operation=operation, error=str(e.orig))
            raise ConflictError(f"{operation}: uniqueness violation") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("storage_error", operation=operation, error=str(e))
            raise UpstreamError(f"{operation} failed") from e

    # --- Profiles ---

    async def fetch_profile(self, user_id: str) -> UserProfile | None:
        async with self._guard("fetch_profile"):
            result = await self.db.execute(select(Profile).where(Profile.id == user_id))
            row = result.scalar_one_or_none()
        return _to_profile(row) if row else None

    async def update_profile(self, user_id: str, patch: dict[str, Any]) -> None:
        unknown = set(patch) - _PROFILE_PATCHABLE
        if unknown:
            msg = f"Profile fields not writable: {sorted(unknown)}"
            raise ValueError(msg)
        async with self._guard("update_profile", write=True):
            result = await self.db.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(**patch, updated_at=datetime.now(timezone.utc))
            )
            if result.rowcount == 0:
                raise NotFoundError("Profile not found")

    async def list_premium_profiles_with_expiration(self) -> list[UserProfile]:
        async with self._guard("list_premium_profiles_with_expiration"):
            result = await self.db.execute(
                select(Profile).where(
                    Profile.is_premium.is_(True),
                    Profile.premium_expires_at.is_not(None),
                )
            )
            rows = result.scalars().all()
        return [_to_profile(r) for r in rows]

    async def expire_profiles(self, user_ids: Sequence[str]) -> int:
        if not user_ids:
            return 0
        async with self._guard("expire_profiles", write=True):
            result = await self.db.execute(
                update(Profile)
                .where(Profile.id.in_(list(user_ids)))
                .values(is_premium=False, updated_at=datetime.now(timezone.utc))
            )
        return result.rowcount or 0

    # --- Posts & reflections ---

    async def fetch_post(self, post_id: str) -> Post | None:
        async with self._guard("fetch_post"):
            result = await self.db.execute(select(PostRow).where(PostRow.id == post_id))
            row = result.scalar_one_or_none()
        return _to_post(row) if row else None

    async def insert_reflection(self, post_id: str, author_id: str, content: str) -> Reflection:
        row = ReflectionRow(
            post_id=post_id,
            author_id=author_id,
            content=content,
            created_at=datetime.now(timezone.utc),
        )
        async with self._guard("insert_reflection", write=True):
            self.db.add(row)
            await self.db.flush()
        return _to_reflection(row)

    async def list_reflections(self, post_id: str) -> list[Reflection]:
        async with self._guard("list_reflections"):
            result = await self.db.execute(
                select(ReflectionRow)
                .where(ReflectionRow.post_id == post_id)
                .order_by(ReflectionRow.created_at.asc())
            )
            rows = result.scalars().all()
        return [_to_reflection(r) for r in rows]

    # --- Connections ---

    async def _get_connection_row(self, connection_id: str) -> ConnectionRow | None:
        result = await self.db.execute(select(ConnectionRow).where(ConnectionRow.id == connection_id))
        return result.scalar_one_or_none()

    async def fetch_connection(self, connection_id: str) -> Connection | None:
        async with self._guard("fetch_connection"):
            row = await self._get_connection_row(connection_id)
        return _to_connection(row) if row else None

    async def find_connection_between(self, user_a: str, user_b: str) -> Connection | None:
        async with self._guard("find_connection_between"):
            result = await self.db.execute(
                select(ConnectionRow)
                .where(
                    or_(
                        and_(ConnectionRow.requester_id == user_a, ConnectionRow.addressee_id == user_b),
                        and_(ConnectionRow.requester_id == user_b, ConnectionRow.addressee_id == user_a),
                    )
                )
                .limit(1)
            )
            row = result.scalar_one_or_none()
        return _to_connection(row) if row else None

    async def insert_connection(self, requester_id: str, addressee_id: str) -> Connection:
        now = datetime.now(timezone.utc)
        row = ConnectionRow(
            requester_id=requester_id,
            addressee_id=addressee_id,
            status=ConnectionStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        async with self._guard("insert_connection", write=True):
            self.db.add(row)
            await self.db.flush()
        return _to_connection(row)

    async def update_connection(self, connection_id: str, status: ConnectionStatus) -> Connection:
        async with self._guard("update_connection", write=True):
            row = await self._get_connection_row(connection_id)
            if row is None:
                raise NotFoundError("Connection not found")
            row.status = status.value
            row.updated_at = datetime.now(timezone.utc)
            await self.db.flush()
        return _to_connection(row)

    async def delete_connection(self, connection_id: str) -> None:
        async with self._guard("delete_connection", write=True):
            result = await self.db.execute(delete(ConnectionRow).where(ConnectionRow.id == connection_id))
            if result.rowcount == 0:
                raise NotFoundError("Connection not found")

    async def list_connections(self, user_id: str, kind: ConnectionListKind = "all") -> list[Connection]:
        query = select(ConnectionRow)
        if kind == "sent":
            query = query.where(ConnectionRow.requester_id == user_id)
        elif kind == "received":
            query = query.where(ConnectionRow.addressee_id == user_id)
        else:
            query = query.where(
                or_(ConnectionRow.requester_id == user_id, ConnectionRow.addressee_id == user_id)
            )
            if kind == "connected":
                query = query.where(ConnectionRow.status == ConnectionStatus.ACCEPTED.value)

        async with self._guard("list_connections"):
            result = await self.db.execute(query.order_by(ConnectionRow.created_at.desc()))
            rows = result.scalars().all()
        return [_to_connection(r) for r in rows]
