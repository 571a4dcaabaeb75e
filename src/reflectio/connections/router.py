"""Connections router: all /api/v1/connections/* endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Literal

from fastapi import APIRouter, Depends, Query

from reflectio.auth.dependencies import get_current_user_id
from reflectio.connections.permissions import ConnectionPermissionManager
from reflectio.connections.schemas import (
    ConnectionActionResponse,
    ConnectionActionsResponse,
    ConnectionCreateRequest,
    ConnectionLimitationsResponse,
    ConnectionListResponse,
    ConnectionResponse,
    ConnectionUpdateRequest,
    MessageResponse,
)
from reflectio.connections.service import ConnectionService
from reflectio.dependencies import get_connection_manager, get_connection_service, get_storage
from reflectio.domain import Connection
from reflectio.storage.base import Storage

router = APIRouter(prefix="/api/v1/connections", tags=["Connections"])


def _connection_response(connection: Connection) -> ConnectionResponse:
    return ConnectionResponse(
        id=connection.id,
        requester_id=connection.requester_id,
        addressee_id=connection.addressee_id,
        status=connection.status.value,
        created_at=connection.created_at,
        updated_at=connection.updated_at,
    )


# ---------------------------------------------------------------------------
# Capabilities (declared before /{connection_id} routes)
# ---------------------------------------------------------------------------


@router.get("/limitations", response_model=ConnectionLimitationsResponse)
async def get_limitations(
    user_id: str = Depends(get_current_user_id),
    manager: ConnectionPermissionManager = Depends(get_connection_manager),
) -> ConnectionLimitationsResponse:
    limitations = await manager.get_connection_limitations(user_id)
    return ConnectionLimitationsResponse(**asdict(limitations))


@router.get("/actions/{target_user_id}", response_model=ConnectionActionsResponse)
async def get_actions(
    target_user_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: ConnectionPermissionManager = Depends(get_connection_manager),
    storage: Storage = Depends(get_storage),
) -> ConnectionActionsResponse:
    """Actions the caller can take toward another user right now."""
    existing = await storage.find_connection_between(user_id, target_user_id)
    status = "none"
    requester_id = None
    if existing is not None:
        status = existing.status.value
        requester_id = existing.requester_id

    actions = await manager.get_connection_actions(user_id, target_user_id, status, requester_id)
    return ConnectionActionsResponse(
        target_user_id=target_user_id,
        status=status,
        actions=[ConnectionActionResponse(**asdict(a)) for a in actions],
    )


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------


@router.get("", response_model=ConnectionListResponse)
async def list_connections(
    kind: Literal["all", "sent", "received", "connected"] = Query("all", alias="type"),
    user_id: str = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
) -> ConnectionListResponse:
    connections = await service.list_connections(user_id, kind)
    return ConnectionListResponse(
        connections=[_connection_response(c) for c in connections],
        total=len(connections),
    )


@router.post("", response_model=ConnectionResponse, status_code=201)
async def request_connection(
    body: ConnectionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
) -> ConnectionResponse:
    """Send a connection request. Premium only; 409 if the pair already has a row."""
    connection = await service.request_connection(user_id, body.addressee_id)
    return _connection_response(connection)


@router.patch("/{connection_id}", response_model=ConnectionResponse)
async def respond_to_connection(
    connection_id: str,
    body: ConnectionUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
) -> ConnectionResponse:
    connection = await service.respond_to_connection(connection_id, user_id, body.action)
    return _connection_response(connection)


@router.delete("/{connection_id}", response_model=MessageResponse)
async def delete_connection(
    connection_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
) -> MessageResponse:
    await service.delete_connection(connection_id, user_id)
    return MessageResponse(message="Connection removed")
