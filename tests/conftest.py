"""Shared test fixtures.

Tests never touch Postgres or Redis: storage is an in-memory ``Storage``
implementation, the classifier is scripted, and Redis is left
uninitialized so rate limiting and the permission cache pass through.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncGenerator, Callable, Sequence
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from reflectio.config import get_settings
from reflectio.dependencies import get_classifier, get_clock, get_permission_cache, get_storage
from reflectio.domain import Connection, ConnectionStatus, Post, Reflection, UserProfile
from reflectio.errors import ConflictError, NotFoundError, ReflectioError, UpstreamError
from reflectio.main import create_app
from reflectio.moderation.classifier import BaseClassifier, ClassifierVerdict
from reflectio.storage.base import ConnectionListKind, Storage

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeStorage(Storage):
    """In-memory storage that records writes and can be told to fail."""

    def __init__(self) -> None:
        self.profiles: dict[str, UserProfile] = {}
        self.posts: dict[str, Post] = {}
        self.reflections: list[Reflection] = []
        self.connections: dict[str, Connection] = {}
        self.update_calls: list[tuple[str, dict[str, Any]]] = []
        self.expire_calls: list[list[str]] = []
        self.fail_with: ReflectioError | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def fail(self, error: ReflectioError | None = None) -> None:
        self.fail_with = error or UpstreamError("storage unreachable")

    # --- seeding helpers ---

    def add_profile(self, user_id: str, **kwargs: Any) -> UserProfile:
        profile = UserProfile(id=user_id, **kwargs)
        self.profiles[user_id] = profile
        return profile

    def add_post(self, post_id: str, author_id: str, **kwargs: Any) -> Post:
        post = Post(id=post_id, author_id=author_id, **kwargs)
        self.posts[post_id] = post
        return post

    # --- Storage ---

    async def fetch_profile(self, user_id: str) -> UserProfile | None:
        self._check()
        return self.profiles.get(user_id)

    async def update_profile(self, user_id: str, patch: dict[str, Any]) -> None:
        self._check()
        if user_id not in self.profiles:
            raise NotFoundError("Profile not found")
        self.update_calls.append((user_id, dict(patch)))
        self.profiles[user_id] = replace(self.profiles[user_id], **patch)

    async def list_premium_profiles_with_expiration(self) -> list[UserProfile]:
        self._check()
        return [p for p in self.profiles.values() if p.is_premium and p.premium_expires_at is not None]

    async def expire_profiles(self, user_ids: Sequence[str]) -> int:
        self._check()
        self.expire_calls.append(list(user_ids))
        touched = 0
        for user_id in user_ids:
            if user_id in self.profiles:
                self.profiles[user_id] = replace(self.profiles[user_id], is_premium=False)
                touched += 1
        return touched

    async def fetch_post(self, post_id: str) -> Post | None:
        self._check()
        return self.posts.get(post_id)

    async def insert_reflection(self, post_id: str, author_id: str, content: str) -> Reflection:
        self._check()
        reflection = Reflection(
            id=str(uuid.uuid4()),
            post_id=post_id,
            author_id=author_id,
            content=content,
            created_at=NOW,
        )
        self.reflections.append(reflection)
        return reflection

    async def list_reflections(self, post_id: str) -> list[Reflection]:
        self._check()
        return [r for r in self.reflections if r.post_id == post_id]

    async def fetch_connection(self, connection_id: str) -> Connection | None:
        self._check()
        return self.connections.get(connection_id)

    async def find_connection_between(self, user_a: str, user_b: str) -> Connection | None:
        self._check()
        for connection in self.connections.values():
            if {connection.requester_id, connection.addressee_id} == {user_a, user_b}:
                return connection
        return None

    async def insert_connection(self, requester_id: str, addressee_id: str) -> Connection:
        self._check()
        if await self.find_connection_between(requester_id, addressee_id) is not None:
            raise ConflictError("Connection already exists")
        connection = Connection(
            id=str(uuid.uuid4()),
            requester_id=requester_id,
            addressee_id=addressee_id,
            created_at=NOW,
            updated_at=NOW,
        )
        self.connections[connection.id] = connection
        return connection

    async def update_connection(self, connection_id: str, status: ConnectionStatus) -> Connection:
        self._check()
        if connection_id not in self.connections:
            raise NotFoundError("Connection not found")
        updated = replace(self.connections[connection_id], status=status)
        self.connections[connection_id] = updated
        return updated

    async def delete_connection(self, connection_id: str) -> None:
        self._check()
        if self.connections.pop(connection_id, None) is None:
            raise NotFoundError("Connection not found")

    async def list_connections(self, user_id: str, kind: ConnectionListKind = "all") -> list[Connection]:
        self._check()
        result = []
        for c in self.connections.values():
            if kind == "sent" and c.requester_id == user_id:
                result.append(c)
            elif kind == "received" and c.addressee_id == user_id:
                result.append(c)
            elif kind == "connected" and c.involves(user_id) and c.status == ConnectionStatus.ACCEPTED:
                result.append(c)
            elif kind == "all" and c.involves(user_id):
                result.append(c)
        return result


class FakeClassifier(BaseClassifier):
    """Returns a scripted verdict and records what it was asked."""

    def __init__(self, verdict: ClassifierVerdict | None = None) -> None:
        self.verdict = verdict or ClassifierVerdict(flagged=False, scores={"harassment": 0.01})
        self.error: ReflectioError | None = None
        self.calls: list[str] = []

    async def classify(self, text: str) -> ClassifierVerdict:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.verdict


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Build HS256 access tokens the way the auth backend issues them."""
    settings = get_settings()

    def _make(user_id: str, *, expires_in: int = 3600, audience: str | None = None, secret: str | None = None) -> str:
        payload = {
            "sub": user_id,
            "aud": audience or settings.jwt_audience,
            "exp": int(time.time()) + expires_in,
        }
        return jwt.encode(payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)

    return _make


@pytest.fixture
def auth_headers(make_token: Callable[..., str]) -> Callable[[str], dict[str, str]]:
    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers


@pytest_asyncio.fixture
async def client(
    storage: FakeStorage,
    classifier: FakeClassifier,
    clock: Callable[[], datetime],
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with storage, clock and classifier swapped out."""
    app = create_app()
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_permission_cache] = lambda: None
    app.dependency_overrides[get_classifier] = lambda: classifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
