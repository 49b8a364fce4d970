"""Agent Coordinator - entry point for submitting tasks to the agent pool."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from realty_coordinator.agents import build_default_agents
from realty_coordinator.agents.base import AgentContext, AgentResponse, BaseAgent
from realty_coordinator.agents.sources import DataSources
from realty_coordinator.config import Settings
from realty_coordinator.engine.coordination import Clock, Coordination, utc_now
from realty_coordinator.engine.registry import AgentRegistration, AgentRegistry
from realty_coordinator.engine.tasks import TaskRecord, TaskStatus, TaskStore
from realty_coordinator.engine.workflows import (
    WorkflowConfig,
    WorkflowDescriptor,
    WorkflowRegistry,
)
from realty_coordinator.errors import NoSuitableAgent, UnknownAgent, UnknownStrategy
from realty_coordinator.llm.client import TextGenerationClient, build_text_client
from realty_coordinator.strategies import STRATEGIES, BaseStrategy

if TYPE_CHECKING:
    from realty_coordinator.storage.database import TaskJournal

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY = "smart-routing"


class AgentCoordinator:
    """
    Routes free-text tasks to registered agents.

    Workflow:
    1. Create a task record (pending -> processing)
    2. Look up the named strategy
    3. Let the strategy select, invoke and combine agents
    4. Finalize the record (completed or failed) and journal it

    Build one per process and pass it to whatever serves callers.
    """

    def __init__(
        self,
        agents: Mapping[str, BaseAgent] | None = None,
        text_client: TextGenerationClient | None = None,
        settings: Settings | None = None,
        journal: TaskJournal | None = None,
        sources: DataSources | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings or Settings()
        self.journal = journal

        if agents is None:
            text_client = text_client or build_text_client(self.settings)
            logger.info("Default agents use the %s text client", text_client.provider_name)
            agents = build_default_agents(
                text_client, sources or DataSources.from_settings(self.settings)
            )

        self.registry = AgentRegistry()
        for agent_id, agent in agents.items():
            self.registry.register(agent_id, agent)

        self.tasks = TaskStore(self.settings.max_task_history)
        self.coordination = Coordination(self.registry, self.settings.agent_timeout, clock)
        self.strategies: dict[str, BaseStrategy] = {
            name: strategy_cls() for name, strategy_cls in STRATEGIES.items()
        }
        self.workflows = WorkflowRegistry(lambda agent_id: agent_id in self.registry)

    async def execute_task(
        self,
        task: str,
        context: AgentContext,
        strategy_name: str = DEFAULT_STRATEGY,
    ) -> AgentResponse:
        """
        Run a task through a coordination strategy.

        Args:
            task: Free-text task description
            context: Caller context
            strategy_name: "sequential", "parallel" or "smart-routing"

        Returns:
            The strategy's combined AgentResponse

        Raises:
            ValueError: task is blank (no record is created)
            UnknownStrategy: strategy_name is not registered (record is failed)
        """
        if not task or not task.strip():
            raise ValueError("task is required")

        async def run() -> AgentResponse:
            strategy = self.strategies.get(strategy_name)
            if strategy is None:
                raise UnknownStrategy(strategy_name)
            return await strategy.execute(task, context, self.coordination)

        return await self._tracked(task, strategy_name, "user_request", "coordinator", context, run)

    async def execute_agent(self, agent_id: str, task: str,
                            context: AgentContext) -> AgentResponse:
        """Invoke one agent directly, bypassing routing."""
        if not task or not task.strip():
            raise ValueError("task is required")
        registration = self.registry.get(agent_id)
        if registration is None:
            raise UnknownAgent(agent_id)

        async def run() -> AgentResponse:
            if not registration.is_active:
                raise NoSuitableAgent(task)
            return await self.coordination.invoke(registration, task, context)

        return await self._tracked(
            task, f"direct:{agent_id}", "direct_request", agent_id, context, run
        )

    async def _tracked(self, task: str, strategy: str, task_type: str, agent_id: str,
                       context: AgentContext,
                       run: Callable[[], Awaitable[AgentResponse]]) -> AgentResponse:
        record = self.tasks.create(
            task, strategy, task_type=task_type, agent_id=agent_id, context=context
        )
        self.tasks.transition(record.id, TaskStatus.PROCESSING)
        logger.info("Task %s started (strategy=%s)", record.id, strategy)

        try:
            response = await run()
        except asyncio.CancelledError:
            self._finalize(record.id, TaskStatus.FAILED, error="Task cancelled")
            raise
        except Exception as e:
            logger.error("Task %s failed: %s", record.id, e)
            self._finalize(record.id, TaskStatus.FAILED, error=str(e) or type(e).__name__)
            raise

        self._finalize(record.id, TaskStatus.COMPLETED, result=response)
        logger.info("Task %s completed (confidence=%.2f)", record.id, response.confidence)
        return response

    def _finalize(self, task_id: str, status: TaskStatus, *,
                  result: AgentResponse | None = None, error: str | None = None) -> None:
        record = self.tasks.transition(task_id, status, result=result, error=error)
        if self.journal is None:
            return
        try:
            self.journal.record_task(record)
        except sqlite3.Error as e:
            logger.warning("Could not journal task %s: %s", task_id, e)

    # Agent management

    def get_agent_status(self) -> list[AgentRegistration]:
        return self.registry.all()

    def get_agent(self, agent_id: str) -> AgentRegistration | None:
        return self.registry.get(agent_id)

    def activate_agent(self, agent_id: str) -> bool:
        return self.registry.set_active(agent_id, True)

    def deactivate_agent(self, agent_id: str) -> bool:
        return self.registry.set_active(agent_id, False)

    # Task history

    def get_task_history(self, limit: int | None = None) -> list[TaskRecord]:
        """Most recent first."""
        return self.tasks.history(limit)

    def get_task(self, task_id: str) -> TaskRecord | None:
        return self.tasks.get(task_id)

    # Workflows

    def setup_automated_workflow(
        self, config: WorkflowConfig | Mapping[str, Any]
    ) -> WorkflowDescriptor:
        """Register a workflow descriptor. Raises InvalidWorkflow on bad input."""
        if not isinstance(config, WorkflowConfig):
            config = WorkflowConfig.from_dict(dict(config))
        descriptor = self.workflows.register(config)
        if self.journal is not None:
            try:
                self.journal.record_workflow(descriptor)
            except sqlite3.Error as e:
                logger.warning("Could not journal workflow %s: %s", descriptor.workflow_id, e)
        return descriptor

    def list_workflows(self) -> list[WorkflowDescriptor]:
        return self.workflows.all()

    def get_stats(self) -> dict[str, Any]:
        """Task counts by status plus per-agent usage."""
        return {
            "tasks": self.tasks.counts(),
            "agents": self.registry.get_stats(),
            "workflows": len(self.workflows.all()),
        }
