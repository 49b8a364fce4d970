"""Shared fixtures: scripted agents and a coordinator built from them."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from realty_coordinator.agents.base import AgentContext, AgentResponse, BaseAgent
from realty_coordinator.config import Settings
from realty_coordinator.engine.coordinator import AgentCoordinator
from realty_coordinator.llm.client import StaticTextClient


class ScriptedAgent(BaseAgent):
    """Returns a fixed response (or raises) and records what it was given."""

    description = "Scripted test agent"
    system_prompt = "You are a test agent."

    def __init__(self, name: str, response: AgentResponse | None = None,
                 error: Exception | None = None, delay: float = 0.0) -> None:
        super().__init__(StaticTextClient())
        self.name = name
        self.response = response or AgentResponse(message=f"{name} says hi", confidence=0.8)
        self.error = error
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    async def execute(self, input: str, context: AgentContext) -> AgentResponse:
        self.calls.append({
            "input": input,
            "context": context,
            "previous_results": list(context.previous_results),
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def context() -> AgentContext:
    return AgentContext(session_id="session-1", user_id="user-1")


@pytest.fixture
def scripted_agents() -> dict[str, ScriptedAgent]:
    return {
        "financial": ScriptedAgent("Financial"),
        "property-project": ScriptedAgent("Property"),
        "market-analysis": ScriptedAgent("Market"),
    }


@pytest.fixture
def coordinator(scripted_agents: dict[str, ScriptedAgent]) -> AgentCoordinator:
    return AgentCoordinator(agents=scripted_agents, settings=Settings(agent_timeout=5.0))


@pytest.fixture
def real_coordinator() -> AgentCoordinator:
    """The three domain agents on fixture data and a static text client."""
    return AgentCoordinator(
        text_client=StaticTextClient(reply="Here is my analysis."),
        settings=Settings(agent_timeout=5.0),
    )


@pytest.fixture
def make_agent() -> type[ScriptedAgent]:
    return ScriptedAgent
