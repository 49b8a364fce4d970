"""Agent contract: context, response, tools and the abstract base agent."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

import httpx

from realty_coordinator.errors import TextGenerationError, ToolExecutionFailure
from realty_coordinator.llm.client import Message, TextGenerationClient

logger = logging.getLogger(__name__)

LLM_FALLBACK_MESSAGE = (
    "I apologize, but I encountered an error processing your request. Please try again."
)

ToolFn = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass
class Action:
    """Side-effect record produced by one tool call."""

    type: str
    data: Any = None


@dataclass
class AgentResponse:
    """Structured result of one agent invocation.

    List fields are never ``None`` so combination never branches on them.
    """

    message: str
    confidence: float
    actions: list[Action] = field(default_factory=list)
    tools_used: list[str] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)
    needs_human_intervention: bool = False
    data: Any = None
    visualizations: list[Any] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {self.confidence}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AgentContext:
    """Per-request context handed to every agent invocation."""

    session_id: str
    user_id: str | None = None
    conversation_history: list[Any] = field(default_factory=list)
    user_profile: dict[str, Any] = field(default_factory=dict)
    project_context: dict[str, Any] = field(default_factory=dict)
    previous_results: list[AgentResponse] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentContext:
        """Build a context from a loosely-shaped request body."""
        session_id = data.get("session_id") or data.get("sessionId")
        if not session_id:
            raise ValueError("context.session_id is required")
        return cls(
            session_id=str(session_id),
            user_id=data.get("user_id") or data.get("userId"),
            conversation_history=list(
                data.get("conversation_history") or data.get("conversationHistory") or []
            ),
            user_profile=dict(data.get("user_profile") or data.get("userProfile") or {}),
            project_context=dict(data.get("project_context") or data.get("projectContext") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "conversation_history": list(self.conversation_history),
            "user_profile": dict(self.user_profile),
            "project_context": dict(self.project_context),
            "previous_results": [r.to_dict() for r in self.previous_results],
        }


@dataclass
class Tool:
    """Named unit of work owned by exactly one agent.

    ``parameters`` documents the expected shape; it is not enforced.
    """

    name: str
    description: str
    parameters: dict[str, str]
    execute: ToolFn

    def describe(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


class BaseAgent(ABC):
    """Base class for agents.

    Subclasses set ``name``, ``description`` and ``system_prompt``, register
    their tools in ``__init__`` and implement ``execute``.
    """

    name: str
    description: str
    system_prompt: str

    def __init__(self, text_client: TextGenerationClient) -> None:
        self.text_client = text_client
        self._tools: list[Tool] = []
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    @abstractmethod
    async def execute(self, input: str, context: AgentContext) -> AgentResponse:
        """Handle free-text input and return a structured response.

        Must not raise on tool failure. Only setup errors may escape.
        """
        ...

    def add_tool(self, tool: Tool) -> None:
        if self.get_tool(tool.name) is not None:
            raise ValueError(f"Tool {tool.name} already registered on {self.name}")
        self._tools.append(tool)

    def get_tools(self) -> list[Tool]:
        return list(self._tools)

    def get_tool(self, name: str) -> Tool | None:
        return next((t for t in self._tools if t.name == name), None)

    def build_messages(self, prompt: str) -> list[Message]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": prompt},
        ]

    async def call_llm(self, messages: Sequence[Message]) -> str:
        """Ask the text client for a reply, degrading to an apology on failure."""
        try:
            result = await self.text_client.complete(messages)
        except (TextGenerationError, httpx.HTTPError) as e:
            self.logger.error("LLM call failed: %s", e)
            return LLM_FALLBACK_MESSAGE

        if not isinstance(result, str):
            self.logger.error("Unexpected LLM response format: %r", type(result))
            return LLM_FALLBACK_MESSAGE
        return result

    async def use_tool(self, name: str, params: dict[str, Any]) -> Any:
        """Run a tool. Raises ToolExecutionFailure when missing or failing."""
        tool = self.get_tool(name)
        if tool is None:
            raise ToolExecutionFailure(name)
        try:
            return await tool.execute(params)
        except ToolExecutionFailure:
            raise
        except Exception as e:
            raise ToolExecutionFailure(name, e) from e

    async def run_tool(self, name: str, params: dict[str, Any]) -> Any | None:
        """Like use_tool, but a failure is logged and reported as ``None``."""
        try:
            return await self.use_tool(name, params)
        except ToolExecutionFailure as e:
            self.logger.warning("%s", e)
            return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "tools": [t.describe() for t in self._tools],
        }


def build_response(
    message: str,
    actions: list[Action],
    tools_used: list[str],
    next_steps: Sequence[str],
    *,
    high_confidence: float = 0.9,
    low_confidence: float = 0.6,
    needs_human_intervention: bool = False,
    visualizations: list[Any] | None = None,
) -> AgentResponse:
    """Assemble an agent response; confidence is high only when a tool produced data."""
    return AgentResponse(
        message=message,
        actions=actions,
        tools_used=tools_used,
        next_steps=list(next_steps),
        confidence=high_confidence if actions else low_confidence,
        needs_human_intervention=needs_human_intervention,
        visualizations=visualizations or [],
    )
