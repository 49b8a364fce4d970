"""Sequential strategy: relevant agents one at a time, each seeing earlier results."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from realty_coordinator.agents.base import AgentContext, AgentResponse
from realty_coordinator.errors import AgentInvocationFailure
from realty_coordinator.strategies.base import BaseStrategy, fork_context

if TYPE_CHECKING:
    from realty_coordinator.engine.coordination import Coordination

logger = logging.getLogger(__name__)


class SequentialStrategy(BaseStrategy):
    """Invoke every relevant agent in registry order.

    After each success the response is appended to ``previous_results`` so
    later agents can build on it. A failing agent is logged and skipped.

    """

    name = "sequential"
    description = "Relevant agents in order, each seeing earlier responses"

    async def execute(self, task: str, context: AgentContext,
                      coordination: Coordination) -> AgentResponse:
        context = fork_context(context)
        responses: list[AgentResponse] = []

        for registration in coordination.relevant_agents(task):
            try:
                response = await coordination.invoke(registration, task, context)
            except AgentInvocationFailure as e:
                logger.warning("Skipping agent in sequential run: %s", e)
                continue
            responses.append(response)
            context.previous_results.append(response)

        return coordination.combine(responses)
