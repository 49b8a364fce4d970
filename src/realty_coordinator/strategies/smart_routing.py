"""Smart routing strategy: one best-scoring agent."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from realty_coordinator.agents.base import AgentContext, AgentResponse
from realty_coordinator.errors import NoSuitableAgent
from realty_coordinator.strategies.base import BaseStrategy

if TYPE_CHECKING:
    from realty_coordinator.engine.coordination import Coordination

logger = logging.getLogger(__name__)


class SmartRoutingStrategy(BaseStrategy):
    """Route the task to the single best agent.

    Agent failures are not caught here; they reach the coordinator and fail
    the task.

    """

    name = "smart-routing"
    description = "Single best agent by keyword score and recent use"

    async def execute(self, task: str, context: AgentContext,
                      coordination: Coordination) -> AgentResponse:
        registration = coordination.select_best_agent(task)
        if registration is None:
            raise NoSuitableAgent(task)

        logger.info("Routing task to %s", registration.id)
        return await coordination.invoke(registration, task, context)
