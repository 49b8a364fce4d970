"""Agent Registry - Tracks registered agents, activation state and usage."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from realty_coordinator.agents.base import BaseAgent


@dataclass
class AgentRegistration:
    """One registered agent and its bookkeeping."""

    id: str
    name: str
    description: str
    agent: BaseAgent
    is_active: bool = True
    last_used: datetime | None = None
    usage_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "last_used": self.last_used.isoformat() if self.last_used else None,
            "usage_count": self.usage_count,
        }


class AgentRegistry:
    """
    Ordered, id-keyed agent registry.

    Features:
    - Registration order is preserved and used for tie-breaking
    - Activation flags and usage counters are mutated under a lock
    - Listings are new lists, so later registrations never change a caller's view
    """

    def __init__(self) -> None:
        self._agents: dict[str, AgentRegistration] = {}
        self._lock = threading.Lock()

    def register(self, agent_id: str, agent: BaseAgent) -> AgentRegistration:
        """Register an agent under a unique id."""
        with self._lock:
            if agent_id in self._agents:
                raise ValueError(f"Agent {agent_id} is already registered")
            registration = AgentRegistration(
                id=agent_id,
                name=agent.name,
                description=agent.description,
                agent=agent,
            )
            self._agents[agent_id] = registration
        return registration

    def get(self, agent_id: str) -> AgentRegistration | None:
        return self._agents.get(agent_id)

    def all(self) -> list[AgentRegistration]:
        """All registrations, in registration order."""
        with self._lock:
            return list(self._agents.values())

    def active(self) -> list[AgentRegistration]:
        """Active registrations, in registration order."""
        with self._lock:
            return [r for r in self._agents.values() if r.is_active]

    def set_active(self, agent_id: str, active: bool) -> bool:
        """Flip the activation flag. Returns False for an unknown id."""
        with self._lock:
            registration = self._agents.get(agent_id)
            if registration is None:
                return False
            registration.is_active = active
            return True

    def record_use(self, agent_id: str, when: datetime | None = None) -> None:
        """Increment the usage counter and stamp ``last_used``."""
        with self._lock:
            registration = self._agents[agent_id]
            registration.usage_count += 1
            registration.last_used = when or datetime.now(timezone.utc)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        registrations = self.all()
        return {
            "total_agents": len(registrations),
            "active_count": sum(1 for r in registrations if r.is_active),
            "usage": {r.id: r.usage_count for r in registrations},
            "total_invocations": sum(r.usage_count for r in registrations),
        }
