"""Capability endpoints under /api/v1/users/me."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestMyPermissions:
    @pytest.mark.asyncio
    async def test_premium_bundle(self, client: AsyncClient, auth_headers, storage) -> None:
        storage.add_profile("u1", is_premium=True, premium_expires_at=NOW + timedelta(days=30))
        response = await client.get("/api/v1/users/me/permissions", headers=auth_headers("u1"))
        assert response.status_code == 200
        assert response.json() == {
            "is_premium": True,
            "can_view_premium_content": True,
            "can_create_premium_content": True,
            "can_request_connection": True,
            "requires_mandatory_moderation": False,
        }

    @pytest.mark.asyncio
    async def test_storage_down_gives_restricted_bundle(self, client: AsyncClient, auth_headers, storage) -> None:
        storage.add_profile("u1", is_premium=True)
        storage.fail()
        response = await client.get("/api/v1/users/me/permissions", headers=auth_headers("u1"))
        assert response.status_code == 200
        data = response.json()
        assert data["is_premium"] is False
        assert data["requires_mandatory_moderation"] is True


class TestMyLevel:
    @pytest.mark.asyncio
    async def test_level(self, client: AsyncClient, auth_headers, storage) -> None:
        storage.add_profile("u1", quality_score=650, current_level=3)
        response = await client.get("/api/v1/users/me/level", headers=auth_headers("u1"))
        assert response.status_code == 200
        data = response.json()
        assert data["level"] == 3
        assert data["title"] == "Thinker"
        assert data["points_into_level"] == 150
        assert data["stored_level"] == 3

    @pytest.mark.asyncio
    async def test_missing_profile(self, client: AsyncClient, auth_headers) -> None:
        response = await client.get("/api/v1/users/me/level", headers=auth_headers("ghost"))
        assert response.status_code == 404


class TestAuth:
    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient, make_token) -> None:
        token = make_token("u1", expires_in=-60)
        response = await client.get("/api/v1/users/me/permissions", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"

    @pytest.mark.asyncio
    async def test_wrong_audience(self, client: AsyncClient, make_token) -> None:
        token = make_token("u1", audience="someone-else")
        response = await client.get("/api/v1/users/me/permissions", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_secret(self, client: AsyncClient, make_token) -> None:
        token = make_token("u1", secret="not-the-secret-at-all-0123456789")
        response = await client.get("/api/v1/users/me/permissions", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
