"""Connection-request workflow.

Enforces identity, pair uniqueness and the lifecycle
``pending -> accepted | rejected | cancelled``. Entitlement questions are
delegated to :class:`ConnectionPermissionManager`.
"""

from __future__ import annotations

import structlog

from reflectio.connections.permissions import ConnectionPermissionManager
from reflectio.domain import Connection, ConnectionStatus
from reflectio.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from reflectio.storage.base import ConnectionListKind, Storage

logger = structlog.get_logger()

RESPONSE_STATUS: dict[str, ConnectionStatus] = {
    "accept": ConnectionStatus.ACCEPTED,
    "decline": ConnectionStatus.REJECTED,
    "cancel": ConnectionStatus.CANCELLED,
}


class ConnectionService:
    def __init__(self, storage: Storage, manager: ConnectionPermissionManager) -> None:
        self.storage = storage
        self.manager = manager

    async def request_connection(self, requester_id: str, addressee_id: str) -> Connection:
        """Create a pending connection from requester to addressee."""
        if requester_id == addressee_id:
            raise ValidationError("Cannot connect to yourself")

        if await self.storage.fetch_profile(addressee_id) is None:
            raise NotFoundError("User not found")

        check = await self.manager.check_connection_action(requester_id, "request", addressee_id)
        check.raise_if_denied()

        existing = await self.storage.find_connection_between(requester_id, addressee_id)
        if existing is not None:
            raise ConflictError("Connection already exists")

        # The pair index still rejects a concurrent duplicate with ConflictError
        connection = await self.storage.insert_connection(requester_id, addressee_id)
        logger.info(
            "connection_requested",
            connection_id=connection.id,
            requester_id=requester_id,
            addressee_id=addressee_id,
        )
        return connection

    async def respond_to_connection(self, connection_id: str, user_id: str, action: str) -> Connection:
        """Accept, decline or cancel a pending connection."""
        new_status = RESPONSE_STATUS.get(action)
        if new_status is None:
            raise ValidationError("Invalid action")

        connection = await self.storage.fetch_connection(connection_id)
        if connection is None:
            raise NotFoundError("Connection not found")

        if action in ("accept", "decline") and connection.addressee_id != user_id:
            raise PermissionDeniedError("Only the requested user can accept or decline")
        if action == "cancel" and connection.requester_id != user_id:
            raise PermissionDeniedError("Only the requester can cancel")

        check = await self.manager.check_connection_action(user_id, action)
        check.raise_if_denied()

        if connection.status != ConnectionStatus.PENDING:
            raise ConflictError(f"Connection is already {connection.status.value}")

        updated = await self.storage.update_connection(connection_id, new_status)
        logger.info(
            "connection_updated",
            connection_id=connection_id,
            user_id=user_id,
            action=action,
            status=new_status.value,
        )
        return updated

    async def delete_connection(self, connection_id: str, user_id: str) -> None:
        connection = await self.storage.fetch_connection(connection_id)
        if connection is None:
            raise NotFoundError("Connection not found")
        if not connection.involves(user_id):
            raise PermissionDeniedError("Not allowed to remove this connection")

        await self.storage.delete_connection(connection_id)
        logger.info("connection_deleted", connection_id=connection_id, user_id=user_id)

    async def list_connections(self, user_id: str, kind: ConnectionListKind = "all") -> list[Connection]:
        return await self.storage.list_connections(user_id, kind)
