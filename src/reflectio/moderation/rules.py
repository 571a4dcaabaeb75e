"""Local moderation checks run alongside the external classifier.

Blocked words are matched as case-insensitive substrings. Custom rules
are regular expressions tagged with a severity.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

import structlog

logger = structlog.get_logger()

Severity = Literal["low", "medium", "high"]

_SEVERITY_RANK: dict[str, int] = {"low": 1, "medium": 2, "high": 3}


@dataclass(frozen=True)
class CustomRule:
    name: str
    pattern: str
    severity: Severity = "medium"
    description: str = ""


@dataclass(frozen=True)
class LocalFindings:
    blocked_words: list[str] = field(default_factory=list)
    triggered_rules: list[CustomRule] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.blocked_words or self.triggered_rules)

    @property
    def severity(self) -> Severity | None:
        """Severity implied by the local hits, or None if none are medium or higher."""
        rank = max((_SEVERITY_RANK[r.severity] for r in self.triggered_rules), default=0)
        if self.blocked_words:
            rank = max(rank, _SEVERITY_RANK["medium"])
        if rank >= _SEVERITY_RANK["high"]:
            return "high"
        if rank == _SEVERITY_RANK["medium"]:
            return "medium"
        return None


def find_blocked_words(text: str, blocked_words: Iterable[str]) -> list[str]:
    normalized = text.lower()
    return [w for w in blocked_words if w and w.lower() in normalized]


def apply_custom_rules(text: str, rules: Sequence[CustomRule]) -> list[CustomRule]:
    triggered = []
    for rule in rules:
        try:
            if re.search(rule.pattern, text, re.IGNORECASE):
                triggered.append(rule)
        except re.error as e:
            logger.error("moderation_rule_invalid", rule=rule.name, error=str(e))
    return triggered


def run_local_checks(
    text: str,
    blocked_words: Iterable[str],
    rules: Sequence[CustomRule] = (),
) -> LocalFindings:
    return LocalFindings(
        blocked_words=find_blocked_words(text, blocked_words),
        triggered_rules=apply_custom_rules(text, rules),
    )


def sanitize_text(text: str, blocked_words: Iterable[str]) -> str:
    """Mask every blocked word with asterisks."""
    for word in blocked_words:
        if word:
            text = re.sub(re.escape(word), "*" * len(word), text, flags=re.IGNORECASE)
    return text


def validate_rules(rules: Sequence[CustomRule]) -> list[str]:
    """Problems found in a rule set; empty when valid."""
    errors = []
    for rule in rules:
        if not rule.name or not rule.pattern:
            errors.append("Custom rules need a name and a pattern")
            continue
        try:
            re.compile(rule.pattern)
        except re.error:
            errors.append(f'Invalid regex pattern in rule "{rule.name}"')
    return errors
