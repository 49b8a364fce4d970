"""FastAPI server for programmatic coordinator access."""

from __future__ import annotations

import logging
import time
from typing import Any

import click
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from realty_coordinator import __version__
from realty_coordinator.agents.base import AgentContext
from realty_coordinator.engine.coordinator import DEFAULT_STRATEGY, AgentCoordinator
from realty_coordinator.engine.registry import AgentRegistration
from realty_coordinator.errors import (
    InvalidWorkflow,
    NoSuitableAgent,
    UnknownAgent,
    UnknownStrategy,
)

logger = logging.getLogger(__name__)

TASK_PAGE_SIZE = 50


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _agent_payload(registration: AgentRegistration) -> dict[str, Any]:
    return {**registration.to_dict(), **registration.agent.to_dict()}


def _parse_task_request(request: dict[str, Any]) -> tuple[str, AgentContext] | JSONResponse:
    task = request.get("task")
    context = request.get("context")
    if not task or not isinstance(task, str) or not isinstance(context, dict):
        return _error(400, "Task and context are required")
    try:
        return task, AgentContext.from_dict(context)
    except ValueError as e:
        return _error(400, str(e))


def create_app(coordinator: AgentCoordinator) -> FastAPI:
    """Build the API around an existing coordinator."""
    app = FastAPI(
        title="Realty Coordinator API",
        version=__version__,
        description="Real-estate agent coordination API",
    )
    app.state.coordinator = coordinator
    start_time = time.monotonic()

    def get_coordinator(request: Request) -> AgentCoordinator:
        return request.app.state.coordinator

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        """Health check."""
        uptime = time.monotonic() - start_time
        return {"status": "ok", "version": __version__, "uptime_seconds": round(uptime, 1)}

    @app.get("/api/agents")
    async def list_agents(request: Request) -> dict[str, Any]:
        """All registered agents with their tools."""
        coord = get_coordinator(request)
        return {
            "success": True,
            "agents": [_agent_payload(r) for r in coord.get_agent_status()],
            "stats": coord.get_stats(),
        }

    @app.post("/api/agents", response_model=None)
    async def run_task(request: Request, body: dict[str, Any]) -> dict[str, Any] | JSONResponse:
        """Run a task through a coordination strategy."""
        parsed = _parse_task_request(body)
        if isinstance(parsed, JSONResponse):
            return parsed
        task, context = parsed
        strategy = body.get("strategy") or DEFAULT_STRATEGY

        try:
            response = await get_coordinator(request).execute_task(task, context, strategy)
        except UnknownStrategy as e:
            return _error(400, str(e))
        except NoSuitableAgent as e:
            return _error(422, str(e))
        except ValueError as e:
            return _error(400, str(e))
        except Exception as e:
            logger.exception("Task execution failed")
            return _error(500, str(e) or "Failed to execute task")

        return {"success": True, "strategy": strategy, "response": response.to_dict()}

    @app.get("/api/agents/tasks")
    async def task_history(request: Request, limit: int = TASK_PAGE_SIZE) -> dict[str, Any]:
        """Most recent tasks first."""
        coord = get_coordinator(request)
        return {
            "success": True,
            "tasks": [t.to_dict() for t in coord.get_task_history(limit)],
            "total": len(coord.tasks),
        }

    @app.post("/api/agents/tasks", response_model=None)
    async def register_workflow(request: Request,
                                body: dict[str, Any]) -> dict[str, Any] | JSONResponse:
        """Register an automated workflow."""
        if not body.get("name") or not body.get("trigger") or not body.get("agents"):
            return _error(400, "Name, trigger, and agents are required")
        try:
            descriptor = get_coordinator(request).setup_automated_workflow(body)
        except InvalidWorkflow as e:
            return _error(400, str(e))
        return {"success": True, "workflow": descriptor.to_dict()}

    @app.get("/api/agents/tasks/{task_id}", response_model=None)
    async def get_task(request: Request, task_id: str) -> dict[str, Any] | JSONResponse:
        record = get_coordinator(request).get_task(task_id)
        if record is None:
            return _error(404, f"Task {task_id} not found")
        return {"success": True, "task": record.to_dict()}

    @app.get("/api/workflows")
    async def list_workflows(request: Request) -> dict[str, Any]:
        workflows = get_coordinator(request).list_workflows()
        return {"success": True, "workflows": [w.to_dict() for w in workflows]}

    @app.get("/api/agents/{agent_id}", response_model=None)
    async def get_agent(request: Request, agent_id: str) -> dict[str, Any] | JSONResponse:
        registration = get_coordinator(request).get_agent(agent_id)
        if registration is None:
            return _error(404, f"Agent {agent_id} not found")
        return {"success": True, "agent": _agent_payload(registration)}

    @app.patch("/api/agents/{agent_id}", response_model=None)
    async def update_agent(request: Request, agent_id: str,
                           body: dict[str, Any]) -> dict[str, Any] | JSONResponse:
        """Activate or deactivate an agent."""
        coord = get_coordinator(request)
        action = body.get("action")
        if action == "activate":
            found = coord.activate_agent(agent_id)
        elif action == "deactivate":
            found = coord.deactivate_agent(agent_id)
        else:
            return _error(400, "Invalid action. Use 'activate' or 'deactivate'")
        if not found:
            return _error(404, f"Agent {agent_id} not found")
        return {
            "success": True,
            "message": f"Agent {action}d successfully",
            "agent": _agent_payload(coord.get_agent(agent_id)),
        }

    @app.post("/api/agents/{agent_id}/execute", response_model=None)
    async def execute_agent(request: Request, agent_id: str,
                            body: dict[str, Any]) -> dict[str, Any] | JSONResponse:
        """Invoke one agent directly."""
        parsed = _parse_task_request(body)
        if isinstance(parsed, JSONResponse):
            return parsed
        task, context = parsed

        try:
            response = await get_coordinator(request).execute_agent(agent_id, task, context)
        except UnknownAgent as e:
            return _error(404, str(e))
        except NoSuitableAgent as e:
            return _error(422, str(e))
        except ValueError as e:
            return _error(400, str(e))
        except Exception as e:
            logger.exception("Direct agent execution failed")
            return _error(500, str(e) or "Failed to execute agent")

        return {"success": True, "agent_id": agent_id, "response": response.to_dict()}

    return app


@click.command()
@click.option("--port", default=3848, help="Port to listen on")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--journal/--no-journal", default=True, help="Persist finalized tasks to SQLite")
def main(port: int, host: str, journal: bool) -> None:
    """Start the Realty Coordinator API server."""
    import uvicorn

    from realty_coordinator.cli import build_coordinator, configure_logging
    from realty_coordinator.config import get_settings

    settings = get_settings()
    configure_logging(settings.log_level)
    app = create_app(build_coordinator(settings, journal=journal))
    uvicorn.run(app, host=host, port=port)
