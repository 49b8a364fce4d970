"""Error taxonomy for task coordination."""

from __future__ import annotations


class CoordinatorError(Exception):
    """Base class for coordination errors."""


class UnknownStrategy(CoordinatorError):
    """Raised when a task names a strategy that is not registered."""

    def __init__(self, strategy: str) -> None:
        self.strategy = strategy
        super().__init__(f"Unknown coordination strategy: {strategy}")


class NoSuitableAgent(CoordinatorError):
    """Raised by smart routing when no active agent can take the task."""

    def __init__(self, task: str) -> None:
        self.task = task
        super().__init__("No suitable agent found for the task")


class AgentInvocationFailure(CoordinatorError):
    """A whole agent invocation failed (raised, or timed out)."""

    def __init__(self, agent_id: str, cause: BaseException) -> None:
        self.agent_id = agent_id
        self.cause = cause
        detail = str(cause) or type(cause).__name__
        super().__init__(f"Agent {agent_id} failed: {detail}")


class ToolExecutionFailure(CoordinatorError):
    """A tool was missing or raised. Never surfaces past the owning agent."""

    def __init__(self, tool: str, cause: BaseException | None = None) -> None:
        self.tool = tool
        self.cause = cause
        if cause is None:
            message = f"Tool {tool} not found"
        else:
            message = f"Tool {tool} execution failed: {str(cause) or type(cause).__name__}"
        super().__init__(message)


class TextGenerationError(CoordinatorError):
    """The text-generation collaborator could not produce a reply."""


class InvalidWorkflow(CoordinatorError):
    """Workflow registration was rejected."""


class UnknownAgent(CoordinatorError):
    """No agent is registered under the requested id."""

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Agent {agent_id} not found")
