"""The narrow view of the coordinator that strategies work against."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from realty_coordinator.agents.base import AgentContext, AgentResponse
from realty_coordinator.engine import selection
from realty_coordinator.engine.combine import combine_responses
from realty_coordinator.engine.registry import AgentRegistration, AgentRegistry
from realty_coordinator.errors import AgentInvocationFailure

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Coordination:
    """
    Agent selection, guarded invocation and combination for one registry.

    ``invoke`` is the only way strategies call an agent: it applies the
    timeout, wraps any failure in ``AgentInvocationFailure`` and records usage
    on success.
    """

    def __init__(self, registry: AgentRegistry, timeout: float | None = None,
                 clock: Clock = utc_now) -> None:
        self.registry = registry
        self.timeout = timeout
        self.clock = clock

    def relevant_agents(self, task: str) -> list[AgentRegistration]:
        return selection.relevant_agents(task, self.registry.all())

    def select_best_agent(self, task: str) -> AgentRegistration | None:
        return selection.select_best_agent(task, self.registry.all(), now=self.clock())

    async def invoke(self, registration: AgentRegistration, task: str,
                     context: AgentContext) -> AgentResponse:
        try:
            response = await asyncio.wait_for(
                registration.agent.execute(task, context), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise AgentInvocationFailure(
                registration.id, TimeoutError(f"timed out after {self.timeout}s")
            ) from e
        except Exception as e:
            raise AgentInvocationFailure(registration.id, e) from e

        self.registry.record_use(registration.id, self.clock())
        return response

    def combine(self, responses: Sequence[AgentResponse]) -> AgentResponse:
        return combine_responses(responses)
