"""
Text-generation clients.

Agents only need one call: send an ordered list of ``{role, content}`` messages,
get plain text back. Supports:
- Google Gemini (Generative Language REST API)
- A static client for offline use and tests
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import httpx

from realty_coordinator.config import Settings
from realty_coordinator.errors import TextGenerationError

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
SUPPORTED_GEMINI_MODELS = ("gemini-pro", "gemini-1.5-flash", "gemini-1.5-pro")
FALLBACK_GEMINI_MODEL = "gemini-1.5-pro"

Message = dict[str, str]


class TextGenerationClient(ABC):
    """Abstract base class for text-generation collaborators."""

    @abstractmethod
    async def complete(self, messages: Sequence[Message]) -> str:
        """Return the reply text for an ordered message list."""
        ...

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider name for logging."""
        ...


class GeminiClient(TextGenerationClient):
    """Client for the Gemini ``generateContent`` endpoint."""

    TEMPERATURE = 0.2
    MAX_OUTPUT_TOKENS = 1024

    def __init__(
        self,
        api_key: str | None,
        model: str = FALLBACK_GEMINI_MODEL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.model = resolve_model(model)
        self._http_client = http_client
        self._timeout = timeout

    @property
    def provider_name(self) -> str:
        return "Gemini"

    async def complete(self, messages: Sequence[Message]) -> str:
        if not self.api_key:
            raise TextGenerationError("Missing GEMINI_API_KEY")

        payload = self.build_payload(messages)
        url = f"{GEMINI_BASE_URL}/models/{self.model}:generateContent"

        if self._http_client is not None:
            response = await self._http_client.post(url, params={"key": self.api_key}, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, params={"key": self.api_key}, json=payload)

        if response.is_error:
            raise TextGenerationError(
                f"Gemini API error {response.status_code}: {response.text[:500]}"
            )

        try:
            result = response.json()
            logger.debug("Gemini raw result: %s", json.dumps(result)[:2000])
            return extract_text(result)
        except (ValueError, AttributeError, TypeError) as e:
            raise TextGenerationError(
                f"Unreadable Gemini response: {response.text[:500]}"
            ) from e

    def build_payload(self, messages: Sequence[Message]) -> dict[str, Any]:
        """Gemini takes a single prompt, so messages are flattened as ``ROLE: content``."""
        prompt = "\n\n".join(f"{m['role'].upper()}: {m['content']}" for m in messages)
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.TEMPERATURE,
                "maxOutputTokens": self.MAX_OUTPUT_TOKENS,
            },
        }


class StaticTextClient(TextGenerationClient):
    """Returns a fixed reply; records every message list it was sent."""

    def __init__(self, reply: str = "Analysis complete. See the attached actions for details.") -> None:
        self.reply = reply
        self.calls: list[list[Message]] = []

    @property
    def provider_name(self) -> str:
        return "static"

    async def complete(self, messages: Sequence[Message]) -> str:
        self.calls.append([dict(m) for m in messages])
        return self.reply


def resolve_model(model: str) -> str:
    """Normalize ``models/<name>`` and map unsupported names to the fallback model."""
    name = model.removeprefix("models/")
    return name if name in SUPPORTED_GEMINI_MODELS else FALLBACK_GEMINI_MODEL


def extract_text(result: dict[str, Any]) -> str:
    """Pull reply text out of the response shapes Gemini has used.

    Falls back to the raw JSON so callers always get something displayable.
    """
    candidates = result.get("candidates") or []
    first = candidates[0] if candidates else {}
    content = first.get("content") if isinstance(first, dict) else None

    if isinstance(content, dict):
        parts = content.get("parts") or []
        if parts and isinstance(parts[0], dict) and parts[0].get("text"):
            return parts[0]["text"]
        if content.get("text"):
            return content["text"]
    elif isinstance(content, list) and content:
        head = content[0]
        if isinstance(head, dict):
            if head.get("text"):
                return head["text"]
            head_parts = head.get("parts") or []
            if head_parts and isinstance(head_parts[0], dict) and head_parts[0].get("text"):
                return head_parts[0]["text"]

    output = result.get("output") or []
    if output and isinstance(output[0], dict):
        output_content = output[0].get("content")
        if isinstance(output_content, dict) and output_content.get("text"):
            return output_content["text"]

    pieces = []
    for candidate in candidates:
        candidate_content = candidate.get("content") if isinstance(candidate, dict) else None
        if not isinstance(candidate_content, dict):
            continue
        parts = candidate_content.get("parts") or []
        pieces.append(" ".join(p["text"] for p in parts if isinstance(p, dict) and p.get("text")))
    pieces = [p for p in pieces if p]
    if pieces:
        return "\n".join(pieces)

    return json.dumps(result)


def build_text_client(settings: Settings) -> TextGenerationClient:
    """Gemini when a key is configured, otherwise the static offline client."""
    if settings.gemini_api_key:
        return GeminiClient(settings.gemini_api_key, settings.gemini_model)
    logger.warning("GEMINI_API_KEY is not set; using the static text client")
    return StaticTextClient()
