"""Moderation decision policy.

Decides, before the classifier is ever called, whether a submission needs
classification. Trusted premium users skip it; everyone else is
moderated. The decision is kept separate from the classifier verdict so
the bypass reason can be audited on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import structlog

from reflectio.domain import Clock, utc_now
from reflectio.entitlements.resolver import resolve_entitlement
from reflectio.errors import ReflectioError
from reflectio.storage.base import Storage

logger = structlog.get_logger()

DEFAULT_TRUSTED_LEVEL = 3

BYPASS_EMPTY = "Empty content, nothing to moderate"
BYPASS_TRUSTED = "Trusted premium user at level {level} or above"


class TrustTier(str, Enum):
    TRUSTED_PREMIUM = "trusted-premium"
    STANDARD = "standard"


class ModerationType(str, Enum):
    MANDATORY = "mandatory"
    BYPASSED = "bypassed"


class ContentKind(str, Enum):
    TEXT = "text"
    AUDIO = "audio"


@dataclass(frozen=True)
class ModerationContext:
    post_id: str | None = None
    reflection_id: str | None = None
    is_edit: bool = False


@dataclass(frozen=True)
class ModerationRequest:
    user_id: str
    content: str
    content_type: ContentKind = ContentKind.TEXT
    context: ModerationContext = field(default_factory=ModerationContext)


@dataclass(frozen=True)
class ModerationDecision:
    should_moderate: bool
    moderation_type: ModerationType
    user_type: TrustTier
    bypass_reason: str | None = None


class ModerationPolicy:
    def __init__(
        self,
        storage: Storage,
        *,
        clock: Clock | None = None,
        trusted_level_threshold: int = DEFAULT_TRUSTED_LEVEL,
    ) -> None:
        self.storage = storage
        self.clock = clock or utc_now
        self.trusted_level_threshold = trusted_level_threshold

    async def resolve_trust_tier(self, user_id: str) -> TrustTier:
        """Trusted means premium right now and at or above the level threshold.

        Raises ReflectioError if the profile cannot be read.
        """
        profile = await self.storage.fetch_profile(user_id)
        if profile is None:
            return TrustTier.STANDARD
        entitlement = resolve_entitlement(profile, self.clock())
        if entitlement.premium and profile.current_level >= self.trusted_level_threshold:
            return TrustTier.TRUSTED_PREMIUM
        return TrustTier.STANDARD

    async def should_moderate_content(self, request: ModerationRequest) -> ModerationDecision:
        if not request.content.strip():
            return ModerationDecision(
                should_moderate=False,
                moderation_type=ModerationType.BYPASSED,
                user_type=TrustTier.STANDARD,
                bypass_reason=BYPASS_EMPTY,
            )

        try:
            tier = await self.resolve_trust_tier(request.user_id)
        except ReflectioError as e:
            # Never approve silently when the tier is unknown
            logger.error("moderation_tier_failed", user_id=request.user_id, error=str(e))
            tier = TrustTier.STANDARD

        if tier is TrustTier.TRUSTED_PREMIUM:
            return ModerationDecision(
                should_moderate=False,
                moderation_type=ModerationType.BYPASSED,
                user_type=tier,
                bypass_reason=BYPASS_TRUSTED.format(level=self.trusted_level_threshold),
            )

        return ModerationDecision(
            should_moderate=True,
            moderation_type=ModerationType.MANDATORY,
            user_type=tier,
        )

    def log_moderation_decision(self, decision: ModerationDecision, request: ModerationRequest) -> None:
        logger.info(
            "moderation_decision",
            user_id=request.user_id,
            user_type=decision.user_type.value,
            content_type=request.content_type.value,
            moderation_type=decision.moderation_type.value,
            should_moderate=decision.should_moderate,
            bypass_reason=decision.bypass_reason,
            post_id=request.context.post_id,
            reflection_id=request.context.reflection_id,
            is_edit=request.context.is_edit,
            content_length=len(request.content),
        )
