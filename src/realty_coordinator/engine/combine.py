"""Merge agent responses into the single response a caller sees."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from realty_coordinator.agents.base import AgentResponse

EMPTY_MESSAGE = "No agent responses received"
EMPTY_NEXT_STEPS = ["Review task and try again"]


def _unique_strings(values: Iterable[object]) -> list[str]:
    """First-occurrence de-duplication; non-string entries are dropped."""
    seen: dict[str, None] = {}
    for value in values:
        if isinstance(value, str):
            seen.setdefault(value, None)
    return list(seen)


def combine_responses(responses: Sequence[AgentResponse]) -> AgentResponse:
    """Combine responses in invocation order.

    No responses gives a zero-confidence response asking for review. A single
    response is returned as-is.
    """
    if not responses:
        return AgentResponse(
            message=EMPTY_MESSAGE,
            confidence=0.0,
            needs_human_intervention=True,
            next_steps=list(EMPTY_NEXT_STEPS),
        )
    if len(responses) == 1:
        return responses[0]

    return AgentResponse(
        message="\n\n".join(
            f"**Agent {i}:** {r.message}" for i, r in enumerate(responses, start=1)
        ),
        actions=[action for r in responses for action in r.actions],
        tools_used=_unique_strings(tool for r in responses for tool in r.tools_used),
        next_steps=_unique_strings(step for r in responses for step in r.next_steps),
        confidence=sum(r.confidence for r in responses) / len(responses),
        needs_human_intervention=any(r.needs_human_intervention for r in responses),
        visualizations=[v for r in responses for v in r.visualizations],
    )
