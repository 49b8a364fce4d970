"""Property project agent: project status, interested clients, demand-letter campaigns."""

from __future__ import annotations

import re
import time
import uuid
from collections import Counter, deque
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Protocol

from realty_coordinator.agents.base import (
    Action,
    AgentContext,
    AgentResponse,
    BaseAgent,
    Tool,
    build_response,
)
from realty_coordinator.agents.keywords import classify
from realty_coordinator.agents.sources import FixtureProjectSource, ProjectSource
from realty_coordinator.llm.client import TextGenerationClient

DEFAULT_PROJECT_ID = "sunset-towers"
MIN_MATCH_SCORE = 50
PRIORITY_MATCH_SCORE = 80


class ProjectCategory(StrEnum):
    SEND_DEMAND_LETTERS = "send_demand_letters"
    CLIENT_MATCHING = "client_matching"
    PROJECT_ANALYTICS = "project_analytics"
    CLIENT_LIST = "client_list"
    PROJECT_STATUS = "project_status"


CLASSIFICATION: dict[ProjectCategory, tuple[str, ...]] = {
    ProjectCategory.SEND_DEMAND_LETTERS: ("demand letter", "send email", "notify clients"),
    ProjectCategory.CLIENT_MATCHING: ("match", "recommend"),
    ProjectCategory.PROJECT_ANALYTICS: ("analytics", "report", "performance"),
    ProjectCategory.CLIENT_LIST: ("clients", "interested"),
}

# Later entries override earlier ones, so "final price" is a final-units letter.
UPDATE_TYPES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("floor_completion", ("floor completed",)),
    ("amenity_update", ("amenity",)),
    ("price_alert", ("price",)),
    ("final_units", ("final", "last")),
)

NEXT_STEPS: dict[ProjectCategory, tuple[str, ...]] = {
    ProjectCategory.SEND_DEMAND_LETTERS: (
        "Review email delivery results",
        "Track client responses and engagement",
        "Follow up with non-responders in 3-5 days",
        "Schedule calls with interested clients",
    ),
    ProjectCategory.CLIENT_MATCHING: (
        "Contact high-match clients immediately",
        "Schedule property viewings",
        "Prepare personalized proposals",
    ),
    ProjectCategory.PROJECT_ANALYTICS: (
        "Share analytics with development team",
        "Adjust marketing strategy based on insights",
        "Update pricing strategy if needed",
    ),
}
DEFAULT_NEXT_STEPS = ("Review project status with team", "Plan next communication with clients")

LETTER_SUBJECTS = {
    "construction_milestone": "Progress Update: {name} Construction Milestone Reached",
    "floor_completion": "New Floor Completed at {name} - Limited Units Available",
    "amenity_update": "New Amenity Alert: {name} Gets Even Better",
    "price_alert": "Price Update: {name} - Act Now",
    "final_units": "Last Chance: Final Units at {name}",
}

LETTER_LEADS = {
    "construction_milestone": (
        "Construction at {name} has reached a new milestone. {completed} of {total} units "
        "are complete and the project is now in the {phase} phase."
    ),
    "floor_completion": (
        "Another floor at {name} is complete. {available} units remain across our floor plans."
    ),
    "amenity_update": "{name} now offers: {amenities}.",
    "price_alert": (
        "Pricing at {name} is changing soon. Units currently start at ${min_price:,.0f}."
    ),
    "final_units": "Only {available} units remain at {name}. These will not last.",
}


class Mailer(Protocol):
    async def send(self, to: str, subject: str, body: str) -> str:
        """Deliver one message and return its message id."""
        ...


class OutboxMailer:
    """
    Keeps sent messages in memory; stands in for a real mail service.

    Meant for tests and offline runs. Only the newest ``max_messages``
    messages are kept.
    """

    def __init__(self, max_messages: int = 500) -> None:
        self.outbox: deque[dict[str, Any]] = deque(maxlen=max_messages)

    async def send(self, to: str, subject: str, body: str) -> str:
        message_id = f"msg-{uuid.uuid4().hex[:9]}"
        self.outbox.append({"message_id": message_id, "to": to, "subject": subject, "body": body})
        return message_id


class PropertyProjectAgent(BaseAgent):
    """Project tracking, client communication and demand-letter campaigns."""

    name = "Property Project Management Agent"
    description = (
        "Manages real estate projects, client communication, and automated demand letter campaigns"
    )
    system_prompt = """You are an expert real estate project manager and marketing agent. Your role is to:
1. Manage property development projects and track construction progress
2. Maintain client databases and track interest levels
3. Generate and send demand letters for project updates
4. Coordinate client communications based on project milestones
5. Match client preferences with suitable units
6. Track sales performance and generate project reports

Always maintain professional communication and ensure timely updates to interested clients."""

    def __init__(self, text_client: TextGenerationClient,
                 projects: ProjectSource | None = None,
                 mailer: Mailer | None = None) -> None:
        super().__init__(text_client)
        self.projects = projects or FixtureProjectSource()
        self.mailer = mailer or OutboxMailer()
        self._setup_tools()

    def _setup_tools(self) -> None:
        self.add_tool(Tool(
            name="get_project_status",
            description="Get current status and details of a real estate project",
            parameters={"project_id": "string"},
            execute=self._get_project_status,
        ))
        self.add_tool(Tool(
            name="get_interested_clients",
            description="Get list of clients interested in a specific project",
            parameters={"project_id": "string", "filters": "object"},
            execute=self._get_interested_clients,
        ))
        self.add_tool(Tool(
            name="generate_demand_letter",
            description="Generate personalized demand letters for project updates",
            parameters={"project_id": "string", "update_type": "string", "custom_message": "string"},
            execute=self._generate_demand_letter,
        ))
        self.add_tool(Tool(
            name="send_demand_letters",
            description="Send demand letters to all interested clients",
            parameters={"demand_letter": "object"},
            execute=self._send_demand_letters,
        ))
        self.add_tool(Tool(
            name="match_clients_to_units",
            description="Match interested clients to available units based on preferences",
            parameters={"project_id": "string"},
            execute=self._match_clients_to_units,
        ))
        self.add_tool(Tool(
            name="generate_project_analytics",
            description="Generate project performance analytics",
            parameters={"project_id": "string"},
            execute=self._generate_project_analytics,
        ))

    async def execute(self, input: str, context: AgentContext) -> AgentResponse:
        message = await self.call_llm(
            self.build_messages(f"Handle project management request: {input}")
        )
        category = classify(input, CLASSIFICATION, ProjectCategory.PROJECT_STATUS)
        project_id = self.extract_project_id(input, context)

        actions: list[Action] = []
        tools_used: list[str] = []

        async def run(tool: str, action_type: str, params: dict[str, Any]) -> Any:
            data = await self.run_tool(tool, params)
            if data is not None:
                actions.append(Action(type=action_type, data=data))
                tools_used.append(tool)
            return data

        if category is ProjectCategory.SEND_DEMAND_LETTERS:
            letter = await run("generate_demand_letter", "demand_letter_generated", {
                "project_id": project_id,
                "update_type": self.extract_update_type(input),
                "custom_message": self.extract_custom_message(input),
            })
            if letter is not None:
                await run("send_demand_letters", "emails_sent", {"demand_letter": letter})
        elif category is ProjectCategory.CLIENT_MATCHING:
            await run("match_clients_to_units", "client_matches", {"project_id": project_id})
        elif category is ProjectCategory.PROJECT_ANALYTICS:
            await run("generate_project_analytics", "project_analytics", {"project_id": project_id})
        elif category is ProjectCategory.CLIENT_LIST:
            await run("get_interested_clients", "client_list",
                      {"project_id": project_id, "filters": {}})
        else:
            await run("get_project_status", "project_status", {"project_id": project_id})

        return build_response(message, actions, tools_used,
                              NEXT_STEPS.get(category, DEFAULT_NEXT_STEPS))

    # Tools

    async def _get_project_status(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self.projects.get_project(params["project_id"])

    async def _get_interested_clients(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        clients = await self.projects.interested_clients(params["project_id"])
        filters = params.get("filters") or {}
        budget = filters.get("budget")
        if budget:
            clients = [c for c in clients if budget["min"] <= c["budget"] <= budget["max"]]
        if filters.get("status"):
            clients = [c for c in clients if c["status"] == filters["status"]]
        return clients

    async def _generate_demand_letter(self, params: dict[str, Any]) -> dict[str, Any]:
        project = await self.use_tool("get_project_status", {"project_id": params["project_id"]})
        clients = await self.use_tool("get_interested_clients",
                                      {"project_id": params["project_id"], "filters": {}})

        update_type = params.get("update_type") or "construction_milestone"
        if update_type not in LETTER_SUBJECTS:
            update_type = "construction_milestone"

        available = sum(fp["available_units"] for fp in project["floor_plans"])
        lead = LETTER_LEADS[update_type].format(
            name=project["name"],
            completed=project["completed_units"],
            total=project["total_units"],
            phase=project["current_phase"],
            available=available,
            amenities=", ".join(project["amenities"]),
            min_price=project["price_range"]["min"],
        )
        body = ["Dear Valued Client,", "", lead]
        if params.get("custom_message"):
            body += ["", params["custom_message"]]
        body += ["", "Best regards,", f"The {project['name']} Sales Team"]

        return {
            "id": f"DL-{int(time.time() * 1000)}",
            "project_id": params["project_id"],
            "update_type": update_type,
            "subject": LETTER_SUBJECTS[update_type].format(name=project["name"]),
            "content": "\n".join(body),
            "recipients": [c["email"] for c in clients],
            "scheduled_send_date": datetime.now(timezone.utc).isoformat(),
            "status": "draft",
        }

    async def _send_demand_letters(self, params: dict[str, Any]) -> dict[str, Any]:
        letter = params["demand_letter"]
        results = []
        for email in letter["recipients"]:
            try:
                message_id = await self.mailer.send(email, letter["subject"], letter["content"])
            except Exception as e:
                self.logger.warning("Sending demand letter to %s failed: %s", email, e)
                results.append({"email": email, "status": "failed", "error": str(e)})
                continue
            results.append({
                "email": email,
                "status": "sent",
                "message_id": message_id,
                "sent_at": datetime.now(timezone.utc).isoformat(),
            })

        return {
            "letter_id": letter["id"],
            "total_sent": sum(1 for r in results if r["status"] == "sent"),
            "total_failed": sum(1 for r in results if r["status"] == "failed"),
            "results": results,
        }

    async def _match_clients_to_units(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        project = await self.use_tool("get_project_status", {"project_id": params["project_id"]})
        clients = await self.use_tool("get_interested_clients",
                                      {"project_id": params["project_id"], "filters": {}})

        matches = []
        for client in clients:
            prefs = client.get("preferences") or {}
            for plan in project["floor_plans"]:
                if plan["price"] > client["budget"]:
                    continue
                score = 40
                reasons = ["Within budget"]
                if prefs.get("bedrooms") == plan["bedrooms"]:
                    score += 30
                    reasons.append("Matches bedroom preference")
                if prefs.get("balcony") and "Balcony" in plan["features"]:
                    score += 15
                    reasons.append("Has preferred balcony")
                if prefs.get("city_view") and "City View" in plan["features"]:
                    score += 15
                    reasons.append("Has city view")
                if plan["available_units"] > 0:
                    score += 10
                    reasons.append("Units available")

                if score >= MIN_MATCH_SCORE:
                    matches.append({
                        "client_id": client["id"],
                        "client_name": client["name"],
                        "floor_plan_id": plan["id"],
                        "floor_plan_name": plan["name"],
                        "match_score": score,
                        "reasons": reasons,
                        "recommended_action": (
                            "priority_contact" if score >= PRIORITY_MATCH_SCORE else "follow_up"
                        ),
                    })

        return sorted(matches, key=lambda m: m["match_score"], reverse=True)

    async def _generate_project_analytics(self, params: dict[str, Any]) -> dict[str, Any]:
        project = await self.use_tool("get_project_status", {"project_id": params["project_id"]})
        clients = await self.use_tool("get_interested_clients",
                                      {"project_id": params["project_id"], "filters": {}})

        by_status = Counter(c["status"] for c in clients)
        bedrooms = Counter(
            c["preferences"]["bedrooms"] for c in clients if c.get("preferences", {}).get("bedrooms")
        )
        total_clients = len(clients)
        return {
            "project_overview": {
                "total_units": project["total_units"],
                "completed_units": project["completed_units"],
                "completion_percentage": round(
                    project["completed_units"] / project["total_units"] * 100, 1
                ),
                "current_phase": project["current_phase"],
            },
            "sales_metrics": {
                "total_inquiries": total_clients,
                "prospects": by_status["prospect"],
                "interested": by_status["interested"],
                "reserved": by_status["reserved"],
                "sold": by_status["purchased"],
                "conversion_rate": (
                    round(by_status["purchased"] / total_clients * 100, 1) if total_clients else 0.0
                ),
            },
            "inventory_status": [
                {"floor_plan": fp["name"], "available_units": fp["available_units"],
                 "price": fp["price"]}
                for fp in project["floor_plans"]
            ],
            "marketing_insights": {
                "average_budget": (
                    round(sum(c["budget"] for c in clients) / total_clients, 2) if total_clients else 0.0
                ),
                "most_requested_bedrooms": bedrooms.most_common(1)[0][0] if bedrooms else None,
            },
        }

    # Parameter extraction

    def extract_project_id(self, input: str, context: AgentContext) -> str:
        if context.project_context.get("project_id"):
            return str(context.project_context["project_id"])
        match = re.search(r"project[-_\s]?id[:\s]+([\w-]+)", input, re.IGNORECASE)
        return match.group(1) if match else DEFAULT_PROJECT_ID

    def extract_update_type(self, input: str) -> str:
        lowered = input.lower()
        update_type = "construction_milestone"
        for candidate, triggers in UPDATE_TYPES:
            if any(t in lowered for t in triggers):
                update_type = candidate
        return update_type

    def extract_custom_message(self, input: str) -> str:
        match = re.search(r'message[:\s]+"([^"]+)"', input, re.IGNORECASE)
        return match.group(1) if match else ""
