"""Keyword routing: which agents are relevant to a task, and which one fits best."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta, timezone

from realty_coordinator.agents.keywords import count_hits, matches_any
from realty_coordinator.engine.registry import AgentRegistration

AGENT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "financial": (
        "mortgage", "loan", "financial", "qualification", "preapproval", "pre-approval",
        "tax", "refinanc",
    ),
    "property-project": (
        "project", "demand letter", "client", "email", "construction", "unit", "building",
    ),
    "market-analysis": (
        "market", "analysis", "investment", "scrape", "data", "trend", "comparison",
        "valuation", "rental", "property value", "roi", "cap rate",
    ),
}

SCORING_KEYWORDS: dict[str, tuple[str, ...]] = {
    "financial": (
        "mortgage", "loan", "financial", "qualification", "preapproval", "tax", "refinancing",
    ),
    "property-project": (
        "project", "demand", "letter", "client", "email", "construction", "unit", "building",
    ),
    "market-analysis": (
        "market", "analysis", "investment", "scrape", "data", "trend", "comparison",
        "valuation", "rental", "roi", "cap rate",
    ),
}

KEYWORD_WEIGHT = 10
RECENCY_BONUS = 5
RECENCY_WINDOW = timedelta(hours=1)


def relevant_agents(
    task: str,
    registrations: Sequence[AgentRegistration],
    keywords: Mapping[str, Sequence[str]] = AGENT_KEYWORDS,
) -> list[AgentRegistration]:
    """
    Agents whose keyword table matches the task, in registration order.

    Matching runs over every registration; inactive matches are then dropped,
    so a task aimed only at a deactivated agent yields an empty list. When no
    table matches at all, every active agent is relevant.
    """
    matched = [r for r in registrations if matches_any(task, keywords.get(r.id, ()))]
    if matched:
        return [r for r in matched if r.is_active]
    return [r for r in registrations if r.is_active]


def score_agent(
    task: str,
    registration: AgentRegistration,
    now: datetime,
    keywords: Mapping[str, Sequence[str]] = SCORING_KEYWORDS,
) -> int:
    score = KEYWORD_WEIGHT * count_hits(task, keywords.get(registration.id, ()))
    if registration.last_used is not None and now - registration.last_used < RECENCY_WINDOW:
        score += RECENCY_BONUS
    return score


def score_agents(
    task: str,
    candidates: Sequence[AgentRegistration],
    now: datetime | None = None,
) -> list[tuple[AgentRegistration, int]]:
    now = now or datetime.now(timezone.utc)
    return [(r, score_agent(task, r, now)) for r in candidates]


def select_best_agent(
    task: str,
    registrations: Sequence[AgentRegistration],
    now: datetime | None = None,
) -> AgentRegistration | None:
    """
    Pick one agent for smart routing.

    Returns None only when the relevant set is empty. Ties keep the earliest
    agent in registration order, and an all-zero field falls back to the first
    relevant agent.
    """
    candidates = relevant_agents(task, registrations)
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]

    best, best_score = candidates[0], 0
    for registration, score in score_agents(task, candidates, now):
        if score > best_score:
            best, best_score = registration, score
    return best
