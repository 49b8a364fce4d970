"""Tests for the financial, property-project and market-analysis agents."""

from __future__ import annotations

from typing import Any

import pytest

from realty_coordinator.agents import (
    FinancialAgent,
    MarketAnalysisAgent,
    PropertyProjectAgent,
)
from realty_coordinator.agents.base import LLM_FALLBACK_MESSAGE, AgentContext, Tool
from realty_coordinator.agents.financial import (
    CLASSIFICATION as FINANCIAL_CLASSIFICATION,
    FinancialCategory,
    extract_number,
    loan_amount,
    monthly_payment,
)
from realty_coordinator.agents.keywords import classify
from realty_coordinator.agents.market_analysis import (
    comparison_summary,
    investment_grade,
    market_condition,
    market_score,
)
from realty_coordinator.agents.property_project import OutboxMailer
from realty_coordinator.agents.sources import FixtureMarketSource
from realty_coordinator.errors import TextGenerationError, ToolExecutionFailure
from realty_coordinator.llm.client import StaticTextClient, TextGenerationClient


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def text_client() -> StaticTextClient:
    return StaticTextClient(reply="Here is my analysis.")


class BrokenRates:
    async def market_rate(self) -> float:
        raise RuntimeError("rate feed offline")

    async def investment_rate(self) -> float:
        raise RuntimeError("rate feed offline")

    async def lender_offers(self) -> list[dict[str, Any]]:
        raise RuntimeError("rate feed offline")


class FailingTextClient(TextGenerationClient):
    @property
    def provider_name(self) -> str:
        return "failing"

    async def complete(self, messages: Any) -> str:
        raise TextGenerationError("quota exceeded")


class FlakyMailer(OutboxMailer):
    async def send(self, to: str, subject: str, body: str) -> str:
        if to.startswith("sarah"):
            raise ConnectionError("mailbox unavailable")
        return await super().send(to, subject, body)


class TestBaseAgent:
    """Tool plumbing shared by every agent."""

    @pytest.mark.anyio
    async def test_missing_tool(self, text_client: StaticTextClient) -> None:
        agent = FinancialAgent(text_client)
        with pytest.raises(ToolExecutionFailure, match="Tool nope not found"):
            await agent.use_tool("nope", {})
        assert await agent.run_tool("nope", {}) is None

    def test_duplicate_tool_rejected(self, text_client: StaticTextClient) -> None:
        agent = FinancialAgent(text_client)

        async def noop(params: dict[str, Any]) -> None:
            return None

        with pytest.raises(ValueError):
            agent.add_tool(Tool("get_mortgage_rates", "again", {}, noop))

    @pytest.mark.anyio
    async def test_llm_failure_degrades_to_apology(self, context: AgentContext) -> None:
        agent = FinancialAgent(FailingTextClient())
        response = await agent.execute("What are current mortgage rates?", context)
        assert response.message == LLM_FALLBACK_MESSAGE
        assert response.tools_used == ["get_mortgage_rates"]

    @pytest.mark.anyio
    async def test_prompt_carries_system_role(self, text_client: StaticTextClient,
                                              context: AgentContext) -> None:
        agent = MarketAnalysisAgent(text_client)
        await agent.execute("Market snapshot in Seattle", context)
        [messages] = text_client.calls
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[1]["content"] == "Perform market analysis: Market snapshot in Seattle"

    def test_describe(self, text_client: StaticTextClient) -> None:
        described = PropertyProjectAgent(text_client).to_dict()
        assert described["name"] == "Property Project Management Agent"
        assert len(described["tools"]) == 6


class TestFinancialAgent:
    """Tests for FinancialAgent."""

    def test_extract_number(self) -> None:
        assert extract_number("Income: $85,000", "income") == 85_000
        assert extract_number("about $120,000 annual income", "income") == 120_000
        assert extract_number("loan amount of $300,000", "loan") == 300_000
        assert extract_number("no numbers here", "income") is None

    def test_payment_math(self) -> None:
        assert monthly_payment(360_000, 0, 30) == pytest.approx(1_000)
        payment = monthly_payment(300_000, 6.5, 30)
        assert payment == pytest.approx(1896.20, abs=0.01)
        assert loan_amount(payment, 6.5, 30) == pytest.approx(300_000)

    def test_classification_order(self) -> None:
        def category(text: str) -> FinancialCategory:
            return classify(text, FINANCIAL_CLASSIFICATION, FinancialCategory.QUALIFICATION)

        assert category("Draft a pre-approval letter") is FinancialCategory.PREAPPROVAL_LETTER
        assert category("Can I get pre-approval?") is FinancialCategory.QUALIFICATION
        assert category("Refinance to cut my tax bill") is FinancialCategory.REFINANCING
        assert category("Tax deduction on rental income") is FinancialCategory.TAX
        assert category("hello") is FinancialCategory.QUALIFICATION

    @pytest.mark.anyio
    async def test_mortgage_qualification_through_coordinator(self, real_coordinator,
                                                              context) -> None:
        response = await real_coordinator.execute_task(
            "Check my mortgage qualification: $120,000 income, 750 credit", context
        )
        assert response.message == "Here is my analysis."
        assert response.tools_used == ["calculate_qualification"]
        assert response.confidence == 0.9
        assert response.needs_human_intervention is False

        [action] = response.actions
        assert action.type == "qualification"
        assert action.data["estimated_rate"] == 6.25
        assert action.data["qualification_status"] == "qualified"
        assert response.next_steps[0] == "Review qualification results with client"

    @pytest.mark.anyio
    async def test_underqualified_needs_review(self, text_client, context) -> None:
        agent = FinancialAgent(text_client)
        response = await agent.execute(
            "Can I afford it? income: 30000, budget: 600000", context
        )
        assert response.actions[0].data["qualification_status"] == "needs_improvement"
        assert response.needs_human_intervention is True

    @pytest.mark.anyio
    async def test_mortgage_rates_sorted(self, text_client, context) -> None:
        agent = FinancialAgent(text_client)
        response = await agent.execute(
            "What are current mortgage rates for a loan amount of $300,000?", context
        )
        offers = response.actions[0].data
        assert [o["lender_name"] for o in offers] == [
            "Prime Mortgage Corp", "National Bank", "Community Credit Union",
        ]
        assert [o["rate"] for o in offers] == [6.375, 6.5, 6.625]
        assert all(o["loan_type"] == "Conventional" for o in offers)

    @pytest.mark.anyio
    async def test_preapproval_letter_chain(self, text_client) -> None:
        context = AgentContext(session_id="s", user_profile={"name": "Jane Doe"})
        agent = FinancialAgent(text_client)
        response = await agent.execute("Generate a pre-approval letter", context)

        assert response.tools_used == [
            "calculate_qualification", "get_mortgage_rates", "generate_preapproval",
        ]
        qualification, _, letter = (a.data for a in response.actions)
        assert letter["client_name"] == "Jane Doe"
        assert letter["lender_name"] == "Prime Mortgage Corp"
        assert letter["preapproved_amount"] == qualification["max_loan_amount"]
        assert letter["id"].startswith("PA-")

    @pytest.mark.anyio
    async def test_tax_implications(self, text_client, context) -> None:
        agent = FinancialAgent(text_client)
        response = await agent.execute(
            "Tax benefits of my first investment property, price: 500000", context
        )
        data = response.actions[0].data
        assert data["annual_tax_benefits"]["depreciation_deduction"] == 18_000
        assert data["annual_tax_benefits"]["mortgage_interest_deduction"] == 24_000
        assert data["first_time_buyer_benefits"]["federal_credit"] == 8_000

    @pytest.mark.anyio
    async def test_refinance_too_small_a_drop(self, text_client, context) -> None:
        agent = FinancialAgent(text_client)
        response = await agent.execute("Should I refinance? My rate: 6.7", context)
        data = response.actions[0].data
        assert data["worth_refinancing"] is False
        assert data["potential_new_rate"] == 6.5
        assert "too small" in data["reason"]

    @pytest.mark.anyio
    async def test_tool_failure_lowers_confidence(self, text_client, context) -> None:
        agent = FinancialAgent(text_client, rates=BrokenRates())
        response = await agent.execute("What are current mortgage rates?", context)
        assert response.actions == []
        assert response.tools_used == []
        assert response.confidence == 0.6


class TestPropertyProjectAgent:
    """Tests for PropertyProjectAgent."""

    @pytest.mark.anyio
    async def test_demand_letter_campaign(self, text_client, context) -> None:
        mailer = OutboxMailer()
        agent = PropertyProjectAgent(text_client, mailer=mailer)
        response = await agent.execute(
            "Send a demand letter to every client about the construction milestone", context
        )

        assert response.tools_used == ["generate_demand_letter", "send_demand_letters"]
        letter, delivery = (a.data for a in response.actions)
        assert letter["subject"] == "Progress Update: Sunset Towers Construction Milestone Reached"
        assert "45 of 120 units" in letter["content"]
        assert delivery["total_sent"] == 3
        assert delivery["total_failed"] == 0
        assert [m["to"] for m in mailer.outbox] == letter["recipients"]

    @pytest.mark.anyio
    async def test_outbox_keeps_newest_messages(self) -> None:
        mailer = OutboxMailer(max_messages=2)
        for n in range(5):
            await mailer.send(f"client{n}@example.com", "Update", "body")

        assert [m["to"] for m in mailer.outbox] == ["client3@example.com", "client4@example.com"]

    @pytest.mark.anyio
    async def test_final_units_letter(self, text_client, context) -> None:
        agent = PropertyProjectAgent(text_client)
        response = await agent.execute(
            'Demand letter about the final units, message: "Call us today"', context
        )
        letter = response.actions[0].data
        assert letter["update_type"] == "final_units"
        assert letter["subject"] == "Last Chance: Final Units at Sunset Towers"
        assert "Call us today" in letter["content"]

    @pytest.mark.anyio
    async def test_partial_delivery_failure(self, text_client, context) -> None:
        agent = PropertyProjectAgent(text_client, mailer=FlakyMailer())
        response = await agent.execute("Send demand letter to clients", context)
        delivery = response.actions[1].data
        assert delivery["total_sent"] == 2
        assert delivery["total_failed"] == 1

    @pytest.mark.anyio
    async def test_client_matching(self, text_client, context) -> None:
        agent = PropertyProjectAgent(text_client)
        response = await agent.execute("Match clients to available units", context)
        matches = response.actions[0].data
        assert [m["match_score"] for m in matches] == [95, 80, 65, 50]
        assert matches[0]["client_name"] == "Sarah Johnson"
        assert matches[0]["recommended_action"] == "priority_contact"
        assert matches[-1]["recommended_action"] == "follow_up"

    @pytest.mark.anyio
    async def test_analytics(self, text_client, context) -> None:
        agent = PropertyProjectAgent(text_client)
        response = await agent.execute("Project performance report", context)
        analytics = response.actions[0].data
        assert analytics["project_overview"]["completion_percentage"] == 37.5
        assert analytics["sales_metrics"]["total_inquiries"] == 3
        assert analytics["sales_metrics"]["conversion_rate"] == 0.0
        assert analytics["marketing_insights"]["average_budget"] == 400_000
        assert analytics["marketing_insights"]["most_requested_bedrooms"] == 2

    @pytest.mark.anyio
    async def test_project_id_from_context(self, text_client) -> None:
        context = AgentContext(session_id="s", project_context={"project_id": "harbor-view"})
        agent = PropertyProjectAgent(text_client)
        response = await agent.execute("How is the building coming along?", context)
        assert response.tools_used == ["get_project_status"]
        assert response.actions[0].data["id"] == "harbor-view"


class TestMarketAnalysisAgent:
    """Tests for MarketAnalysisAgent."""

    def test_market_condition(self) -> None:
        assert market_condition(50) == "Buyer's Market"
        assert market_condition(20) == "Seller's Market"
        assert market_condition(45) == "Balanced Market"
        assert market_condition(25) == "Balanced Market"

    def test_grades_and_scores(self) -> None:
        assert investment_grade(9, 13, 400) == "A+"
        assert investment_grade(0, 0, 0) == "D"
        best = {"analysis": {"investment_score": 80, "risk_level": "Low",
                             "market_condition": "Buyer's Market"}}
        assert market_score(best) == 95
        assert comparison_summary([]) == "No valid comparisons available"

    def test_extract_params(self, text_client) -> None:
        agent = MarketAnalysisAgent(text_client)
        params = agent.extract_analysis_params(
            "Value a 3 bed 2 bath 1,800 sqft home in Austin, TX with a $400k budget"
        )
        assert params["location"] == "Austin, TX"
        assert params["budget"] == 400_000
        assert params["bedrooms"] == 3
        assert params["bathrooms"] == 2
        assert params["sqft"] == 1_800

        assert agent.extract_analysis_params("Trends over 3 years")["timeframe"] == "3_years"
        assert agent.extract_analysis_params("hello")["location"] == "New York, NY"
        compared = agent.extract_analysis_params("Compare Austin and Denver markets")
        assert compared["locations"] == ["Austin", "Denver"]

    @pytest.mark.anyio
    async def test_general_snapshot(self, text_client, context) -> None:
        agent = MarketAnalysisAgent(text_client)
        response = await agent.execute("Market snapshot in Seattle", context)
        assert response.tools_used == ["scrape_market_data"]
        assert response.confidence == 0.85
        data = response.actions[0].data
        assert data["location"] == "Seattle"
        assert set(data["analysis"]) == {"market_condition", "risk_level", "investment_score"}
        assert response.visualizations == []

    @pytest.mark.anyio
    async def test_investment_analysis(self, text_client, context) -> None:
        agent = MarketAnalysisAgent(text_client)
        response = await agent.execute(
            "Find an investment in Austin, TX with a $400k budget", context
        )
        data = response.actions[0].data
        assert data["budget"] == 400_000
        assert data["analysis"]["investment_grade"] in {"A+", "A", "B", "C", "D"}
        if data["analysis"]["monthly_cash_flow"] <= 0:
            assert data["analysis"]["payback_period"] is None
        assert response.visualizations == data["visualizations"]
        assert len(response.visualizations) == 2

    @pytest.mark.anyio
    async def test_compare_markets(self, text_client, context) -> None:
        agent = MarketAnalysisAgent(text_client)
        response = await agent.execute("Compare Austin and Denver markets", context)
        data = response.actions[0].data
        assert [c["location"] for c in data["comparisons"]] in (
            ["Austin", "Denver"], ["Denver", "Austin"],
        )
        scores = [c["score"] for c in data["comparisons"]]
        assert scores == sorted(scores, reverse=True)
        assert data["winner"] == data["comparisons"][0]["location"]

    @pytest.mark.anyio
    async def test_compare_needs_two_locations(self, text_client, context) -> None:
        agent = MarketAnalysisAgent(text_client)
        response = await agent.execute("Compare Austin", context)
        assert response.actions == []
        assert response.confidence == 0.6

    @pytest.mark.anyio
    async def test_rental_analysis(self, text_client, context) -> None:
        agent = MarketAnalysisAgent(text_client)
        response = await agent.execute("What rent can I get for a 2 bedroom in Denver?", context)
        data = response.actions[0].data
        assert data["location"] == "Denver"
        assert data["bedrooms"] == 2
        assert data["analysis"]["net_monthly_income"] == pytest.approx(
            data["analysis"]["monthly_rent"] * 0.7
        )
        assert response.visualizations[0]["config"]["chart"] == "doughnut"

    @pytest.mark.anyio
    async def test_trend_prediction(self, text_client, context) -> None:
        agent = MarketAnalysisAgent(text_client)
        response = await agent.execute("Predict price trends in Miami over the next 3 years",
                                       context)
        data = response.actions[0].data
        assert data["location"] == "Miami"
        assert data["timeframe"] == "3_years"
        assert data["confidence"] == 0.7
        scenarios = data["predictions"]["scenarios"]
        assert scenarios["pessimistic"] <= scenarios["realistic"] <= scenarios["optimistic"]

    @pytest.mark.anyio
    async def test_valuation(self, text_client, context) -> None:
        agent = MarketAnalysisAgent(text_client)
        response = await agent.execute(
            "Estimate the value of a 3 bed 2 bath 1,800 sqft home in Austin, TX", context
        )
        data = response.actions[0].data
        snapshot = await FixtureMarketSource().market_snapshot("Austin, TX", "residential")
        expected = round(1_800 * snapshot["price_per_sqft"], 2)
        assert data["estimated_value"] == pytest.approx(expected)
        assert data["value_range"]["low"] == pytest.approx(round(expected * 0.9, 2))
        assert data["confidence"] == 0.8
