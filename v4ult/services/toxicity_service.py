"""
Toxicity classification for confession bodies.

Providers turn text into attribute scores (0.0-1.0). The classifier applies
the threshold and owns the fail-open policy: when no provider is configured,
or the provider fails, the submission proceeds with ``FAIL_OPEN_RESULT``.
Availability wins over strict moderation; admins still review every
confession before it is posted.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import requests
from openai import OpenAI, OpenAIError

from v4ult.config import settings
from v4ult.errors import UpstreamError

logger = logging.getLogger(__name__)

PERSPECTIVE_ATTRIBUTES = ["TOXICITY", "PROFANITY", "IDENTITY_ATTACK", "INSULT", "THREAT"]

# Raised while reading a response body that does not have the documented shape
MALFORMED_RESPONSE_ERRORS = (AttributeError, TypeError, ValueError, IndexError, KeyError)


@dataclass(frozen=True)
class ToxicityResult:
    toxic: bool
    toxicity_score: float
    attributes: Dict[str, float] = field(default_factory=dict)


FAIL_OPEN_RESULT = ToxicityResult(toxic=False, toxicity_score=0.0, attributes={"toxicity": 0.0})


class ToxicityProvider(Protocol):
    name: str

    def analyze(self, text: str) -> Dict[str, float]:
        """Return attribute -> score, including "toxicity". Raise UpstreamError on failure."""
        ...


class PerspectiveProvider:
    """Google Perspective API (commentanalyzer.googleapis.com)."""

    name = "perspective"

    def __init__(self, api_key: str, url: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key
        self.url = url or settings.perspective_api_url
        self.timeout = timeout or settings.provider_timeout

    def analyze(self, text: str) -> Dict[str, float]:
        body = {
            "comment": {"text": text},
            "requestedAttributes": {attr: {} for attr in PERSPECTIVE_ATTRIBUTES},
            "languages": ["en"],
        }
        try:
            response = requests.post(
                self.url,
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(self.name, f"request failed: {e}") from e

        if not response.ok:
            raise UpstreamError(self.name, f"HTTP {response.status_code} {response.reason}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(self.name, "response was not JSON") from e

        try:
            scores = data.get("attributeScores") or {}
            return {
                attr.lower(): float(
                    ((scores.get(attr) or {}).get("summaryScore") or {}).get("value", 0.0)
                )
                for attr in PERSPECTIVE_ATTRIBUTES
            }
        except MALFORMED_RESPONSE_ERRORS as e:
            raise UpstreamError(self.name, f"malformed response: {e}") from e


class OpenAIModerationProvider:
    """
    OpenAI moderation endpoint. It has no single "toxicity" attribute, so the
    highest category score stands in for it.
    """

    name = "openai"

    def __init__(self, api_key: str, model: Optional[str] = None, timeout: Optional[float] = None):
        self.client = OpenAI(api_key=api_key, timeout=timeout or settings.provider_timeout)
        self.model = model or settings.openai_moderation_model

    def analyze(self, text: str) -> Dict[str, float]:
        try:
            response = self.client.moderations.create(model=self.model, input=text)
        except OpenAIError as e:
            raise UpstreamError(self.name, f"moderation failed: {e}") from e

        try:
            categories = response.results[0].category_scores.model_dump()
            attributes = {
                name: float(value)
                for name, value in categories.items()
                if isinstance(value, (int, float))
            }
        except MALFORMED_RESPONSE_ERRORS as e:
            raise UpstreamError(self.name, f"malformed response: {e}") from e

        attributes["toxicity"] = max(attributes.values(), default=0.0)
        return attributes


class ToxicityClassifier:
    """Threshold + fail-open policy around an optional provider."""

    def __init__(
        self,
        provider: Optional[ToxicityProvider],
        threshold: Optional[float] = None,
        fallback: ToxicityResult = FAIL_OPEN_RESULT,
    ):
        self.provider = provider
        self.threshold = settings.toxicity_threshold if threshold is None else threshold
        self.fallback = fallback

    def classify(self, text: str) -> ToxicityResult:
        if self.provider is None:
            logger.warning("No toxicity provider configured; toxicity checks disabled")
            return self.fallback

        try:
            attributes = self.provider.analyze(text)
        except UpstreamError as e:
            logger.warning(f"Toxicity provider failed, failing open: {e}")
            return self.fallback

        max_score = max(attributes.values(), default=0.0)
        return ToxicityResult(
            toxic=max_score > self.threshold,
            toxicity_score=attributes.get("toxicity", 0.0),
            attributes=attributes,
        )


def build_toxicity_classifier() -> ToxicityClassifier:
    """Pick the provider from settings; a missing API key means no provider."""
    provider: Optional[ToxicityProvider] = None
    choice = settings.toxicity_provider.lower()

    if choice == "perspective" and settings.perspective_api_key:
        provider = PerspectiveProvider(settings.perspective_api_key)
    elif choice == "openai" and settings.openai_api_key:
        provider = OpenAIModerationProvider(settings.openai_api_key)

    return ToxicityClassifier(provider)
