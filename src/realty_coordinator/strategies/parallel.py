"""Parallel strategy: all relevant agents at once on the same context snapshot."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from realty_coordinator.agents.base import AgentContext, AgentResponse
from realty_coordinator.errors import AgentInvocationFailure
from realty_coordinator.strategies.base import BaseStrategy, fork_context

if TYPE_CHECKING:
    from realty_coordinator.engine.coordination import Coordination

logger = logging.getLogger(__name__)


class ParallelStrategy(BaseStrategy):
    """Invoke every relevant agent concurrently.

    Each agent gets its own copy of the caller's context, so no agent sees
    another's output. Failed agents are dropped; the rest are combined in
    relevance order.

    """

    name = "parallel"
    description = "Relevant agents concurrently, results combined"

    async def execute(self, task: str, context: AgentContext,
                      coordination: Coordination) -> AgentResponse:
        agents = coordination.relevant_agents(task)
        results = await asyncio.gather(
            *(coordination.invoke(r, task, fork_context(context)) for r in agents),
            return_exceptions=True,
        )

        responses: list[AgentResponse] = []
        for result in results:
            if isinstance(result, AgentInvocationFailure):
                logger.warning("Dropping agent from parallel run: %s", result)
            elif isinstance(result, BaseException):
                raise result
            else:
                responses.append(result)
        return coordination.combine(responses)
