"""Automated workflow registration.

Workflows are descriptors only. Nothing here runs on a timer; an external
scheduler lists the registered descriptors and submits tasks itself.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from realty_coordinator.errors import InvalidWorkflow

logger = logging.getLogger(__name__)

CONSTRUCTION_MILESTONE = "construction_milestone"
CONSTRUCTION_MILESTONE_STEPS = (
    "Monitor construction progress",
    "Generate demand letters on milestones",
    "Send automated emails",
    "Track client engagement",
)


@dataclass
class WorkflowConfig:
    name: str
    trigger: str
    agents: list[str]
    schedule: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowConfig:
        return cls(
            name=data.get("name") or "",
            trigger=data.get("trigger") or "",
            agents=list(data.get("agents") or []),
            schedule=data.get("schedule"),
        )


@dataclass
class WorkflowDescriptor:
    workflow_id: str
    name: str
    trigger: str
    agents: list[str]
    schedule: str | None
    steps: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "name": self.name,
            "trigger": self.trigger,
            "agents": list(self.agents),
            "schedule": self.schedule,
            "steps": list(self.steps),
            "created_at": self.created_at.isoformat(),
        }


class WorkflowRegistry:
    """Validates workflow configs and keeps the resulting descriptors."""

    def __init__(self, is_known_agent: Callable[[str], bool]) -> None:
        self._is_known_agent = is_known_agent
        self._workflows: dict[str, WorkflowDescriptor] = {}
        self._lock = threading.Lock()

    def register(self, config: WorkflowConfig) -> WorkflowDescriptor:
        self._validate(config)

        if config.trigger == CONSTRUCTION_MILESTONE:
            prefix = "construction-workflow"
            steps = list(CONSTRUCTION_MILESTONE_STEPS)
        else:
            prefix = "workflow"
            steps = [f"Run {agent_id} on {config.trigger}" for agent_id in config.agents]

        with self._lock:
            workflow_id = f"{prefix}-{int(time.time() * 1000)}"
            suffix = 1
            while workflow_id in self._workflows:
                suffix += 1
                workflow_id = f"{prefix}-{int(time.time() * 1000)}-{suffix}"
            descriptor = WorkflowDescriptor(
                workflow_id=workflow_id,
                name=config.name,
                trigger=config.trigger,
                agents=list(config.agents),
                schedule=config.schedule,
                steps=steps,
            )
            self._workflows[workflow_id] = descriptor

        logger.info("Registered workflow %s (%s, trigger=%s)",
                    workflow_id, config.name, config.trigger)
        return descriptor

    def get(self, workflow_id: str) -> WorkflowDescriptor | None:
        return self._workflows.get(workflow_id)

    def all(self) -> list[WorkflowDescriptor]:
        with self._lock:
            return sorted(self._workflows.values(), key=lambda w: w.created_at)

    def _validate(self, config: WorkflowConfig) -> None:
        if not config.name.strip():
            raise InvalidWorkflow("Workflow name is required")
        if not config.trigger.strip():
            raise InvalidWorkflow("Workflow trigger is required")
        if not config.agents:
            raise InvalidWorkflow("Workflow needs at least one agent")
        unknown: Sequence[str] = [a for a in config.agents if not self._is_known_agent(a)]
        if unknown:
            raise InvalidWorkflow(f"Unknown agents: {', '.join(unknown)}")
