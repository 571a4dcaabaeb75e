"""Moderation pipeline: policy decision, classifier call, local checks.

The result has the same shape whether or not the classifier ran.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace

import structlog

from reflectio.moderation.classifier import BaseClassifier, ClassifierVerdict
from reflectio.moderation.policy import (
    ModerationDecision,
    ModerationPolicy,
    ModerationRequest,
    ModerationType,
    TrustTier,
)
from reflectio.moderation.rules import (
    CustomRule,
    LocalFindings,
    Severity,
    run_local_checks,
    sanitize_text,
    validate_rules,
)

logger = structlog.get_logger()

HIGH_SCORE = 0.8
MEDIUM_SCORE = 0.5
LOCAL_HIT_CONFIDENCE = 0.8

_SEVERITY_ORDER: list[Severity] = ["low", "medium", "high"]


@dataclass(frozen=True)
class ModerationOutcome:
    flagged: bool
    severity: Severity
    categories: list[str]
    reason: str
    confidence: float
    moderation_type: ModerationType
    user_type: TrustTier
    bypassed: bool = False
    bypass_reason: str | None = None
    suggestions: list[str] = field(default_factory=list)
    sanitized_text: str | None = None


def severity_from_score(score: float) -> Severity:
    if score >= HIGH_SCORE:
        return "high"
    if score >= MEDIUM_SCORE:
        return "medium"
    return "low"


def _worst(a: Severity, b: Severity | None) -> Severity:
    if b is None:
        return a
    return max(a, b, key=_SEVERITY_ORDER.index)


def merge_results(
    decision: ModerationDecision,
    verdict: ClassifierVerdict,
    findings: LocalFindings,
) -> ModerationOutcome:
    """Combine the classifier verdict with local blocked-word and rule hits."""
    categories = list(verdict.categories)
    suggestions: list[str] = []
    if findings.blocked_words:
        categories.append("blocked-words")
        suggestions.append("Remove offensive words")
    for rule in findings.triggered_rules:
        categories.append(rule.name)
        suggestions.append(f"Review: {rule.description or rule.name}")

    if findings.has_issues:
        hits = findings.blocked_words + [r.name for r in findings.triggered_rules]
        reason = f"Content contains inappropriate elements: {', '.join(hits)}"
    elif verdict.flagged:
        reason = "Content flagged as potentially inappropriate"
    else:
        reason = "No issues found"

    confidence = verdict.max_score
    if findings.has_issues:
        confidence = max(confidence, LOCAL_HIT_CONFIDENCE)

    return ModerationOutcome(
        flagged=verdict.flagged or findings.has_issues,
        severity=_worst(severity_from_score(verdict.max_score), findings.severity),
        categories=categories,
        reason=reason,
        confidence=confidence,
        moderation_type=decision.moderation_type,
        user_type=decision.user_type,
        suggestions=suggestions,
    )


class ModerationService:
    def __init__(
        self,
        policy: ModerationPolicy,
        classifier: BaseClassifier,
        *,
        blocked_words: Sequence[str] = (),
        custom_rules: Sequence[CustomRule] = (),
    ) -> None:
        errors = validate_rules(custom_rules)
        if errors:
            raise ValueError("; ".join(errors))

        self.policy = policy
        self.classifier = classifier
        self.blocked_words = list(blocked_words)
        self.custom_rules = list(custom_rules)

    async def moderate(self, request: ModerationRequest) -> ModerationOutcome:
        """Moderate a submission. Raises UpstreamError if the classifier fails."""
        decision = await self.policy.should_moderate_content(request)
        self.policy.log_moderation_decision(decision, request)

        if not decision.should_moderate:
            return ModerationOutcome(
                flagged=False,
                severity="low",
                categories=[],
                reason=decision.bypass_reason or "",
                confidence=1.0,
                moderation_type=decision.moderation_type,
                user_type=decision.user_type,
                bypassed=True,
                bypass_reason=decision.bypass_reason,
            )

        verdict = await self.classifier.classify(request.content)
        findings = run_local_checks(request.content, self.blocked_words, self.custom_rules)
        outcome = merge_results(decision, verdict, findings)
        if findings.blocked_words:
            outcome = replace(outcome, sanitized_text=sanitize_text(request.content, findings.blocked_words))
        if outcome.flagged:
            logger.warning(
                "content_flagged",
                user_id=request.user_id,
                severity=outcome.severity,
                categories=outcome.categories,
            )
        return outcome
