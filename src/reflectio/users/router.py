"""Current-user router: /api/v1/users/me/* capability endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from reflectio.auth.dependencies import get_current_user_id
from reflectio.dependencies import get_permission_service, get_storage
from reflectio.errors import NotFoundError
from reflectio.levels import compute_level
from reflectio.permissions.service import PermissionService
from reflectio.storage.base import Storage
from reflectio.users.schemas import LevelResponse, PremiumStatusResponse, UserPermissionsResponse

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("/me/permissions", response_model=UserPermissionsResponse)
async def get_my_permissions(
    user_id: str = Depends(get_current_user_id),
    permissions: PermissionService = Depends(get_permission_service),
) -> UserPermissionsResponse:
    """Capability bundle. Degrades to the most restrictive bundle on storage errors."""
    bundle = await permissions.get_user_permissions(user_id)
    return UserPermissionsResponse(**bundle.as_dict())


@router.get("/me/premium-status", response_model=PremiumStatusResponse)
async def get_my_premium_status(
    user_id: str = Depends(get_current_user_id),
    permissions: PermissionService = Depends(get_permission_service),
) -> PremiumStatusResponse:
    """Premium status. Downgrades the stored flag if the subscription lapsed."""
    status = await permissions.get_user_premium_status(user_id)
    return PremiumStatusResponse(**asdict(status))


@router.get("/me/level", response_model=LevelResponse)
async def get_my_level(
    user_id: str = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
) -> LevelResponse:
    profile = await storage.fetch_profile(user_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return LevelResponse(**compute_level(profile.quality_score), stored_level=profile.current_level)
