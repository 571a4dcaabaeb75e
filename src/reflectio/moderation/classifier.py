"""External content classifier.

Supports the OpenAI moderation endpoint. There is no retry here: a failed
call surfaces as UpstreamError and the content is not approved.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from reflectio.errors import UpstreamError

logger = structlog.get_logger()


@dataclass(frozen=True)
class ClassifierVerdict:
    flagged: bool
    categories: list[str] = field(default_factory=list)
    scores: dict[str, float] = field(default_factory=dict)

    @property
    def max_score(self) -> float:
        return max(self.scores.values(), default=0.0)


class BaseClassifier(ABC):
    """Abstract base class for content classifiers."""

    @abstractmethod
    async def classify(self, text: str) -> ClassifierVerdict:
        """Classify a text. Raises UpstreamError on failure."""
        ...


class OpenAIModerationClassifier(BaseClassifier):
    """Classify text with the OpenAI moderation API."""

    def __init__(
        self,
        api_key: str,
        url: str = "https://api.openai.com/v1/moderations",
        model: str = "omni-moderation-latest",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self.client = client

    async def _post(self, client: httpx.AsyncClient, text: str) -> httpx.Response:
        response = await client.post(
            self.url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={"model": self.model, "input": text},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response

    async def classify(self, text: str) -> ClassifierVerdict:
        try:
            if self.client is not None:
                response = await self._post(self.client, text)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, text)
            payload: dict[str, Any] = response.json()
            result = payload["results"][0]
            categories = [name for name, hit in (result.get("categories") or {}).items() if hit]
            scores = {name: float(score) for name, score in (result.get("category_scores") or {}).items()}
        except httpx.HTTPError as e:
            logger.error("classifier_request_failed", provider="openai", error=str(e))
            raise UpstreamError("Moderation service unavailable") from e
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            logger.error("classifier_response_invalid", provider="openai", error=str(e))
            raise UpstreamError("Moderation service returned an invalid response") from e

        verdict = ClassifierVerdict(flagged=bool(result.get("flagged")), categories=categories, scores=scores)
        logger.info("classifier_verdict", provider="openai", flagged=verdict.flagged, categories=categories)
        return verdict
