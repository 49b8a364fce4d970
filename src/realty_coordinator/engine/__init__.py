"""Task coordination engine."""

from realty_coordinator.engine.combine import combine_responses
from realty_coordinator.engine.coordination import Coordination
from realty_coordinator.engine.coordinator import AgentCoordinator
from realty_coordinator.engine.registry import AgentRegistration, AgentRegistry
from realty_coordinator.engine.selection import (
    AGENT_KEYWORDS,
    SCORING_KEYWORDS,
    relevant_agents,
    score_agents,
    select_best_agent,
)
from realty_coordinator.engine.tasks import TaskRecord, TaskStatus, TaskStore
from realty_coordinator.engine.workflows import (
    WorkflowConfig,
    WorkflowDescriptor,
    WorkflowRegistry,
)

__all__ = [
    "AGENT_KEYWORDS",
    "AgentCoordinator",
    "AgentRegistration",
    "AgentRegistry",
    "Coordination",
    "SCORING_KEYWORDS",
    "TaskRecord",
    "TaskStatus",
    "TaskStore",
    "WorkflowConfig",
    "WorkflowDescriptor",
    "WorkflowRegistry",
    "combine_responses",
    "relevant_agents",
    "score_agents",
    "select_best_agent",
]
