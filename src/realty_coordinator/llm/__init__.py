"""Text-generation collaborators."""

from realty_coordinator.llm.client import (
    GeminiClient,
    StaticTextClient,
    TextGenerationClient,
    build_text_client,
    extract_text,
)

__all__ = [
    "GeminiClient",
    "StaticTextClient",
    "TextGenerationClient",
    "build_text_client",
    "extract_text",
]
