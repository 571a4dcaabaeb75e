"""Result records returned by the permission checks."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Literal

from reflectio.errors import NotFoundError, PermissionDeniedError, UpstreamError

DenialCode = Literal["not_found", "permission_denied", "upstream_error"]

# Fixed denial messages shown to users
POST_NOT_FOUND = "Post not found"
PREMIUM_CONTENT_REQUIRED = "Premium content requires a subscription"
REFLECTION_REQUIRES_PREMIUM = "Creating reflections requires a premium subscription"
CONNECTION_REQUIRES_PREMIUM = "Only premium users can request connections"
UNKNOWN_ACTION = "Unrecognized action"
CHECK_FAILED = "Could not verify permissions"


@dataclass(frozen=True)
class PermissionCheck:
    """Outcome of a single allow/deny question."""

    allowed: bool
    reason: str | None = None
    upgrade_prompt: bool = False
    code: DenialCode | None = None

    @classmethod
    def allow(cls) -> PermissionCheck:
        return cls(allowed=True)

    @classmethod
    def deny(
        cls,
        reason: str,
        *,
        upgrade_prompt: bool = False,
        code: DenialCode = "permission_denied",
    ) -> PermissionCheck:
        return cls(allowed=False, reason=reason, upgrade_prompt=upgrade_prompt, code=code)

    def raise_if_denied(self) -> None:
        """Turn a denial into the matching domain error."""
        if self.allowed:
            return
        reason = self.reason or "Not allowed"
        if self.code == "not_found":
            raise NotFoundError(reason)
        if self.code == "upstream_error":
            raise UpstreamError(reason)
        raise PermissionDeniedError(reason, upgrade_prompt=self.upgrade_prompt)


@dataclass(frozen=True)
class UserPermissions:
    """Capability bundle derived from a user's resolved entitlement."""

    is_premium: bool
    can_view_premium_content: bool
    can_create_premium_content: bool
    can_request_connection: bool
    requires_mandatory_moderation: bool

    @classmethod
    def for_entitlement(cls, premium: bool) -> UserPermissions:
        return cls(
            is_premium=premium,
            can_view_premium_content=premium,
            can_create_premium_content=premium,
            can_request_connection=premium,
            requires_mandatory_moderation=not premium,
        )

    def as_dict(self) -> dict[str, bool]:
        return asdict(self)


RESTRICTED = UserPermissions.for_entitlement(False)


@dataclass(frozen=True)
class PremiumStatus:
    is_premium: bool
    expires_at: datetime | None = None
    since: datetime | None = None
    was_expired: bool = False
    days_until_expiration: int | None = None
    expiring_soon: bool = False


NOT_PREMIUM = PremiumStatus(is_premium=False)
