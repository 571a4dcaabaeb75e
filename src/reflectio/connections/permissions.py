"""Entitlement gate for the connection-request workflow.

This module only answers the entitlement question. Identity checks
(is this user the addressee / the requester?) belong to the workflow in
:mod:`reflectio.connections.service`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

import structlog

from reflectio.permissions.decisions import UNKNOWN_ACTION, PermissionCheck
from reflectio.permissions.service import PermissionService

logger = structlog.get_logger()

ConnectionActionType = Literal["request", "accept", "decline", "cancel"]
RelationshipStatus = Literal["none", "pending", "accepted", "rejected", "cancelled", "blocked"]

ACTION_LABELS: dict[str, str] = {
    "request": "Request connection",
    "accept": "Accept",
    "decline": "Decline",
    "cancel": "Cancel request",
}

CANNOT_REQUEST = "Cannot request new connections"


@dataclass(frozen=True)
class ConnectionAction:
    type: ConnectionActionType
    label: str
    enabled: bool = True
    requires_upgrade: bool = False


@dataclass(frozen=True)
class ConnectionLimitations:
    can_request: bool
    can_respond: bool = True
    limitations: list[str] = field(default_factory=list)
    upgrade_prompt: bool = False


def _action(action_type: ConnectionActionType, **kwargs: bool) -> ConnectionAction:
    return ConnectionAction(type=action_type, label=ACTION_LABELS[action_type], **kwargs)


class ConnectionPermissionManager:
    """Gates request/accept/decline/cancel and lists the actions a UI may offer."""

    def __init__(self, permissions: PermissionService) -> None:
        self.permissions = permissions

    async def check_connection_action(
        self,
        user_id: str,
        action: str,
        target_user_id: str | None = None,
    ) -> PermissionCheck:
        """Only initiating a connection costs premium; responding is free."""
        if action == "request":
            return await self.permissions.check_connection_permission(user_id, "request")
        if action in ("accept", "decline"):
            return await self.permissions.check_connection_permission(user_id, "respond")
        if action == "cancel":
            return PermissionCheck.allow()

        logger.warning("connection_action_unknown", user_id=user_id, action=action, target_user_id=target_user_id)
        return PermissionCheck.deny(UNKNOWN_ACTION)

    async def get_connection_actions(
        self,
        current_user_id: str,
        target_user_id: str,
        existing_status: RelationshipStatus = "none",
        requester_id: str | None = None,
    ) -> list[ConnectionAction]:
        """Actions available between two users given their current relationship.

        Any existing row other than a pending one offers nothing: the pair
        already has its one connection row, so a new request would conflict.
        """
        if existing_status == "none":
            check = await self.permissions.check_connection_permission(current_user_id, "request")
            return [_action("request", enabled=check.allowed, requires_upgrade=check.upgrade_prompt)]

        if existing_status == "pending":
            if requester_id == current_user_id:
                return [_action("cancel")]
            return [_action("accept"), _action("decline")]

        return []

    async def get_connection_limitations(self, user_id: str) -> ConnectionLimitations:
        permissions = await self.permissions.get_user_permissions(user_id)
        if permissions.can_request_connection:
            return ConnectionLimitations(can_request=True)
        return ConnectionLimitations(
            can_request=False,
            limitations=[CANNOT_REQUEST],
            upgrade_prompt=True,
        )
