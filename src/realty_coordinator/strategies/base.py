"""Base strategy class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import TYPE_CHECKING

from realty_coordinator.agents.base import AgentContext, AgentResponse

if TYPE_CHECKING:
    from realty_coordinator.engine.coordination import Coordination


class BaseStrategy(ABC):
    """Base class for coordination strategies."""

    name: str
    description: str

    @abstractmethod
    async def execute(self, task: str, context: AgentContext,
                      coordination: Coordination) -> AgentResponse:
        """Execute the strategy for a given task.

        Args:
            task: The task description
            context: Caller context, never mutated
            coordination: Agent selection, invocation and combination

        Returns:
            The combined AgentResponse

        """
        ...


def fork_context(context: AgentContext) -> AgentContext:
    """Shallow copy with its own ``previous_results`` list."""
    return replace(context, previous_results=list(context.previous_results))
