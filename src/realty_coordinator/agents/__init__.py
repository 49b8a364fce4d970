"""Domain agents and the contract they share."""

from __future__ import annotations

from realty_coordinator.agents.base import (
    Action,
    AgentContext,
    AgentResponse,
    BaseAgent,
    Tool,
)
from realty_coordinator.agents.financial import FinancialAgent
from realty_coordinator.agents.market_analysis import MarketAnalysisAgent
from realty_coordinator.agents.property_project import PropertyProjectAgent
from realty_coordinator.agents.sources import DataSources
from realty_coordinator.llm.client import TextGenerationClient


def build_default_agents(text_client: TextGenerationClient,
                         sources: DataSources | None = None) -> dict[str, BaseAgent]:
    """The three standard agents, keyed by id in registration order."""
    sources = sources or DataSources.fixtures()
    return {
        "financial": FinancialAgent(text_client, rates=sources.rates),
        "property-project": PropertyProjectAgent(text_client, projects=sources.projects),
        "market-analysis": MarketAnalysisAgent(text_client, market=sources.market),
    }


__all__ = [
    "Action",
    "AgentContext",
    "AgentResponse",
    "BaseAgent",
    "DataSources",
    "FinancialAgent",
    "MarketAnalysisAgent",
    "PropertyProjectAgent",
    "Tool",
    "build_default_agents",
]
