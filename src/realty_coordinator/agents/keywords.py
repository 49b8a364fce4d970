"""Substring keyword matching shared by routing and per-agent classification."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TypeVar

C = TypeVar("C")


def count_hits(text: str, keywords: Iterable[str]) -> int:
    """Number of keywords found as substrings of the lower-cased text."""
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)


def matches_any(text: str, keywords: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def classify(text: str, table: Mapping[C, Sequence[str]], default: C) -> C:
    """First category (in table order) with a trigger substring in the text."""
    lowered = text.lower()
    for category, triggers in table.items():
        if any(trigger in lowered for trigger in triggers):
            return category
    return default
