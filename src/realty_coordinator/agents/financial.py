"""Financial agent: mortgage rates, qualification, investment, tax and refinancing math."""

from __future__ import annotations

import re
import time
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any

from realty_coordinator.agents.base import (
    Action,
    AgentContext,
    AgentResponse,
    BaseAgent,
    Tool,
    build_response,
)
from realty_coordinator.agents.keywords import classify
from realty_coordinator.agents.sources import FixtureRateSource, MortgageRateSource
from realty_coordinator.llm.client import TextGenerationClient

# Debt-to-income limits
FRONT_END_RATIO = 0.28
BACK_END_RATIO = 0.36

PREAPPROVAL_VALID_DAYS = 90
REFINANCE_MIN_RATE_DROP = 0.5
REFINANCE_MAX_BREAK_EVEN_MONTHS = 24


class FinancialCategory(StrEnum):
    """Kinds of financial request."""

    PREAPPROVAL_LETTER = "preapproval_letter"
    QUALIFICATION = "qualification"
    REFINANCING = "refinancing"
    TAX = "tax_analysis"
    INVESTMENT = "investment_analysis"
    MORTGAGE_RATES = "mortgage_rates"


# Checked in order; first hit wins.
CLASSIFICATION: dict[FinancialCategory, tuple[str, ...]] = {
    FinancialCategory.PREAPPROVAL_LETTER: ("preapproval letter", "pre-approval letter", "approval letter"),
    FinancialCategory.QUALIFICATION: ("qualif", "preapproval", "pre-approval", "afford"),
    FinancialCategory.REFINANCING: ("refi",),
    FinancialCategory.TAX: ("tax", "deduction"),
    FinancialCategory.INVESTMENT: ("investment", "rental", "cash flow"),
    FinancialCategory.MORTGAGE_RATES: ("rate", "mortgage"),
}

NEXT_STEPS: dict[FinancialCategory, tuple[str, ...]] = {
    FinancialCategory.PREAPPROVAL_LETTER: (
        "Send pre-approval letter to client",
        "Verify employment and assets",
        "Start property search within approved amount",
    ),
    FinancialCategory.QUALIFICATION: (
        "Review qualification results with client",
        "Gather required documentation",
        "Submit pre-approval application",
    ),
    FinancialCategory.INVESTMENT: (
        "Review investment analysis with client",
        "Schedule property inspection",
        "Finalize financing terms",
    ),
    FinancialCategory.REFINANCING: (
        "Compare current vs. new loan terms",
        "Calculate break-even timeline",
        "Begin refinancing application if beneficial",
    ),
}
DEFAULT_NEXT_STEPS = ("Review analysis with client", "Proceed with next steps")

NUMBER = r"\$?(\d[\d,]*(?:\.\d+)?)"
EXTRACTION_PATTERNS: dict[str, tuple[str, ...]] = {
    "income": (rf"income[:\s]+(?:of\s+)?{NUMBER}", rf"{NUMBER}\s*(?:annual\s+|yearly\s+)?income"),
    "credit": (r"credit(?:\s+score)?(?:\s+of)?[:\s]+(\d+)", r"(\d{3})\s+credit"),
    "price": (rf"price[:\s]+(?:of\s+)?{NUMBER}",),
    "down": (rf"down(?:\s+payment)?[:\s]+(?:of\s+)?{NUMBER}", rf"{NUMBER}\s+down"),
    "rent": (rf"rent[:\s]+(?:of\s+)?{NUMBER}",),
    "loan": (rf"loan(?:\s+amount)?[:\s]+(?:of\s+)?{NUMBER}",),
    "budget": (rf"budget[:\s]+(?:of\s+)?{NUMBER}",),
    "debt": (rf"debts?[:\s]+(?:of\s+)?{NUMBER}",),
    "tax": (rf"tax(?:es)?[:\s]+{NUMBER}",),
    "insurance": (rf"insurance[:\s]+{NUMBER}",),
    "maintenance": (rf"maintenance[:\s]+{NUMBER}",),
    "rate": (r"rate[:\s]+(?:of\s+)?(\d+(?:\.\d+)?)\s*%?", r"(\d+(?:\.\d+)?)\s*%"),
    "balance": (rf"balance[:\s]+(?:of\s+)?{NUMBER}",),
    "payment": (rf"payment[:\s]+(?:of\s+)?{NUMBER}",),
    "value": (rf"value[:\s]+(?:of\s+)?{NUMBER}",),
}


def extract_number(text: str, key: str) -> float | None:
    """Number attached to a keyword, e.g. ``income: 80000`` or ``$80,000 income``."""
    for pattern in EXTRACTION_PATTERNS.get(key, ()):
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            return float(match.group(1).replace(",", ""))
    return None


def monthly_payment(principal: float, annual_rate_pct: float, years: int) -> float:
    """Fixed-rate amortised monthly payment."""
    months = years * 12
    r = annual_rate_pct / 100 / 12
    if r == 0:
        return principal / months
    growth = (1 + r) ** months
    return principal * (r * growth) / (growth - 1)


def loan_amount(payment: float, annual_rate_pct: float, years: int) -> float:
    """Principal a given monthly payment can carry (inverse of monthly_payment)."""
    months = years * 12
    r = annual_rate_pct / 100 / 12
    if r == 0:
        return payment * months
    growth = (1 + r) ** months
    return payment * (growth - 1) / (r * growth)


def credit_adjustment(credit_score: float) -> float:
    if credit_score > 740:
        return -0.25
    if credit_score > 680:
        return 0.0
    return 0.25


def investment_recommendation(cap_rate: float, cash_flow: float) -> str:
    if cap_rate > 8 and cash_flow > 200:
        return "Excellent investment opportunity"
    if cap_rate > 6 and cash_flow > 0:
        return "Good investment with positive cash flow"
    if cap_rate > 4 and cash_flow > -100:
        return "Marginal investment, consider carefully"
    return "Poor investment opportunity, recommend avoiding"


class FinancialAgent(BaseAgent):
    """Financial analysis and mortgage optimisation for real-estate transactions."""

    name = "Financial Intelligence Agent"
    description = (
        "Provides comprehensive financial analysis, mortgage optimization, and "
        "investment calculations for real estate transactions"
    )
    system_prompt = """You are an expert real estate financial advisor and mortgage specialist. Your role is to:
1. Analyze client financial profiles and optimize their financing options
2. Monitor mortgage rates and identify the best opportunities
3. Calculate investment property cash flows and ROI
4. Generate pre-approval letters and financial recommendations
5. Assess tax implications and provide optimization strategies
6. Alert clients to refinancing opportunities

Always provide accurate, detailed financial analysis with clear explanations."""

    def __init__(self, text_client: TextGenerationClient,
                 rates: MortgageRateSource | None = None) -> None:
        super().__init__(text_client)
        self.rates = rates or FixtureRateSource()
        self._setup_tools()

    def _setup_tools(self) -> None:
        self.add_tool(Tool(
            name="get_mortgage_rates",
            description="Fetch current mortgage rates from multiple lenders",
            parameters={"loan_amount": "number", "credit_score": "number", "loan_type": "string"},
            execute=self._get_mortgage_rates,
        ))
        self.add_tool(Tool(
            name="calculate_qualification",
            description="Calculate maximum loan qualification based on client profile",
            parameters={"client_profile": "object"},
            execute=self._calculate_qualification,
        ))
        self.add_tool(Tool(
            name="analyze_investment_property",
            description="Perform detailed investment property cash flow analysis",
            parameters={"purchase_price": "number", "down_payment": "number",
                        "expected_rent": "number", "property_taxes": "number",
                        "insurance": "number", "maintenance": "number", "vacancy": "number"},
            execute=self._analyze_investment_property,
        ))
        self.add_tool(Tool(
            name="generate_preapproval",
            description="Generate pre-approval letter for qualified clients",
            parameters={"client_profile": "object", "lender": "object", "max_amount": "number"},
            execute=self._generate_preapproval,
        ))
        self.add_tool(Tool(
            name="calculate_tax_implications",
            description="Calculate tax benefits and implications of real estate transactions",
            parameters={"purchase_price": "number", "is_investment": "boolean",
                        "is_first_home": "boolean"},
            execute=self._calculate_tax_implications,
        ))
        self.add_tool(Tool(
            name="check_refinancing_opportunity",
            description="Check if client can benefit from refinancing",
            parameters={"current_rate": "number", "current_balance": "number",
                        "current_payment": "number", "credit_score": "number"},
            execute=self._check_refinancing_opportunity,
        ))

    async def execute(self, input: str, context: AgentContext) -> AgentResponse:
        message = await self.call_llm(
            self.build_messages(f"Provide financial analysis for: {input}")
        )
        category = classify(input, CLASSIFICATION, FinancialCategory.QUALIFICATION)

        actions: list[Action] = []
        tools_used: list[str] = []

        async def run(tool: str, action_type: str, params: dict[str, Any]) -> Any:
            data = await self.run_tool(tool, params)
            if data is not None:
                actions.append(Action(type=action_type, data=data))
                tools_used.append(tool)
            return data

        if category is FinancialCategory.MORTGAGE_RATES:
            await run("get_mortgage_rates", "mortgage_rates", self.extract_rate_params(input))
        elif category is FinancialCategory.QUALIFICATION:
            await run("calculate_qualification", "qualification",
                      {"client_profile": self.extract_client_profile(input, context)})
        elif category is FinancialCategory.PREAPPROVAL_LETTER:
            profile = self.extract_client_profile(input, context)
            qualification = await run("calculate_qualification", "qualification",
                                      {"client_profile": profile})
            offers = await run("get_mortgage_rates", "mortgage_rates", self.extract_rate_params(input))
            if qualification is not None and offers:
                await run("generate_preapproval", "preapproval_letter", {
                    "client_profile": profile,
                    "lender": offers[0],
                    "max_amount": qualification["max_loan_amount"],
                })
        elif category is FinancialCategory.INVESTMENT:
            await run("analyze_investment_property", "investment_analysis",
                      self.extract_investment_params(input))
        elif category is FinancialCategory.TAX:
            await run("calculate_tax_implications", "tax_analysis", self.extract_tax_params(input))
        elif category is FinancialCategory.REFINANCING:
            await run("check_refinancing_opportunity", "refinancing_analysis",
                      self.extract_refinance_params(input))

        needs_review = any(
            isinstance(a.data, dict) and a.data.get("qualification_status") == "needs_improvement"
            for a in actions
        )
        return build_response(
            message,
            actions,
            tools_used,
            NEXT_STEPS.get(category, DEFAULT_NEXT_STEPS),
            needs_human_intervention=needs_review,
        )

    # Tools

    async def _get_mortgage_rates(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        principal = float(params["loan_amount"])
        base = await self.rates.market_rate() + credit_adjustment(float(params["credit_score"]))
        loan_type = params.get("loan_type") or "Conventional"

        offers = []
        for lender in await self.rates.lender_offers():
            rate = base + lender["spread"]
            payment = monthly_payment(principal, rate, lender["term"])
            closing = principal * lender["closing_cost_ratio"]
            offers.append({
                "lender_name": lender["lender_name"],
                "rate": round(rate, 3),
                "term": lender["term"],
                "loan_type": loan_type,
                "monthly_payment": round(payment, 2),
                "estimated_closing_costs": round(closing, 2),
                "total_cost": round(payment * lender["term"] * 12 + closing, 2),
                "preapproval_amount": round(principal * lender["preapproval_multiplier"], 2),
            })
        return sorted(offers, key=lambda o: o["rate"])

    async def _calculate_qualification(self, params: dict[str, Any]) -> dict[str, Any]:
        profile = params["client_profile"]
        monthly_income = profile["income"] / 12
        if monthly_income <= 0:
            raise ValueError("income must be positive")
        monthly_debts = profile["current_debts"] / 12

        max_housing = monthly_income * FRONT_END_RATIO
        max_total = monthly_income * BACK_END_RATIO - monthly_debts
        max_payment = max(min(max_housing, max_total), 0.0)

        rate = await self.rates.market_rate() + credit_adjustment(profile["credit_score"])
        max_loan = loan_amount(max_payment, rate, 30)
        max_purchase = max_loan + profile["down_payment"]

        return {
            "max_loan_amount": round(max_loan, 2),
            "max_purchase_price": round(max_purchase, 2),
            "max_monthly_payment": round(max_payment, 2),
            "estimated_rate": rate,
            "debt_to_income_ratio": round((monthly_debts + max_payment) / monthly_income, 4),
            "recommended_down_payment": round(max_purchase * 0.2, 2),
            "qualification_status": (
                "qualified" if max_purchase >= profile["max_budget"] else "needs_improvement"
            ),
        }

    async def _analyze_investment_property(self, params: dict[str, Any]) -> dict[str, Any]:
        price = float(params["purchase_price"])
        down = float(params["down_payment"])
        rent = float(params["expected_rent"])
        if price <= 0 or down <= 0:
            raise ValueError("purchase_price and down_payment must be positive")

        rate = await self.rates.investment_rate()
        expenses = {
            "mortgage": monthly_payment(price - down, rate, 30),
            "property_taxes": params["property_taxes"] / 12,
            "insurance": params["insurance"] / 12,
            "maintenance": params["maintenance"] / 12,
            "vacancy": rent * params["vacancy"] / 100,
            "management": rent * 0.1,
        }
        total = sum(expenses.values())
        net = rent - total
        annual = net * 12
        cap_rate = (annual + expenses["mortgage"] * 12) / price * 100
        cash_on_cash = annual / down * 100

        return {
            "monthly_income": rent,
            "monthly_expenses": {k: round(v, 2) for k, v in expenses.items()},
            "total_monthly_expenses": round(total, 2),
            "net_cash_flow": round(net, 2),
            "annual_cash_flow": round(annual, 2),
            "cap_rate": round(cap_rate, 2),
            "cash_on_cash": round(cash_on_cash, 2),
            "break_even_point": 0 if net > 0 else round(abs(net) / rent * 100, 2),
            "recommendation": "positive_cashflow" if net > 0 else "negative_cashflow",
            "analysis": investment_recommendation(cap_rate, net),
        }

    async def _generate_preapproval(self, params: dict[str, Any]) -> dict[str, Any]:
        profile = params["client_profile"]
        lender = params["lender"]
        now = datetime.now(timezone.utc)
        return {
            "id": f"PA-{int(time.time() * 1000)}",
            "client_name": profile["name"],
            "preapproved_amount": params["max_amount"],
            "lender_name": lender["lender_name"],
            "rate": lender["rate"],
            "expiration_date": (now + timedelta(days=PREAPPROVAL_VALID_DAYS)).isoformat(),
            "conditions": [
                "Employment verification",
                "Asset verification",
                "Property appraisal",
                "Title search and insurance",
            ],
            "generated_at": now.isoformat(),
            "status": "active",
        }

    async def _calculate_tax_implications(self, params: dict[str, Any]) -> dict[str, Any]:
        price = float(params["purchase_price"])
        estimated_interest = price * 0.06 * 0.8
        benefits = {
            "mortgage_interest_deduction": 0.0,
            "property_tax_deduction": 0.0,
            "depreciation_deduction": 0.0,
        }
        if params.get("is_investment"):
            # 27.5-year residential depreciation schedule
            benefits["depreciation_deduction"] = round(price * 0.036, 2)
            benefits["mortgage_interest_deduction"] = round(estimated_interest, 2)
        else:
            benefits["mortgage_interest_deduction"] = round(min(estimated_interest, 10_000), 2)

        first_home = None
        if params.get("is_first_home"):
            first_home = {
                "federal_credit": min(price * 0.1, 8_000),
                "state_programs": ["Down payment assistance", "Reduced closing costs"],
            }
        return {
            "annual_tax_benefits": benefits,
            "total_annual_savings": round(sum(benefits.values()), 2),
            "first_time_buyer_benefits": first_home,
            "recommendation": "Consult with tax professional for personalized advice",
        }

    async def _check_refinancing_opportunity(self, params: dict[str, Any]) -> dict[str, Any]:
        market = await self.rates.market_rate()
        new_rate = market - 0.25 if params["credit_score"] > 740 else market
        drop = params["current_rate"] - new_rate
        if drop < REFINANCE_MIN_RATE_DROP:
            return {
                "worth_refinancing": False,
                "potential_new_rate": new_rate,
                "reason": "Rate difference too small to justify closing costs",
            }

        new_payment = monthly_payment(params["current_balance"], new_rate, 30)
        savings = params["current_payment"] - new_payment
        closing = params["current_balance"] * 0.02
        break_even = closing / savings if savings > 0 else None
        return {
            "worth_refinancing": break_even is not None and break_even < REFINANCE_MAX_BREAK_EVEN_MONTHS,
            "potential_new_rate": new_rate,
            "new_monthly_payment": round(new_payment, 2),
            "monthly_savings": round(savings, 2),
            "annual_savings": round(savings * 12, 2),
            "closing_costs": round(closing, 2),
            "break_even_months": round(break_even, 1) if break_even is not None else None,
        }

    # Parameter extraction

    def extract_rate_params(self, input: str) -> dict[str, Any]:
        return {
            "loan_amount": extract_number(input, "loan") or 400_000,
            "credit_score": extract_number(input, "credit") or 720,
            "loan_type": "FHA" if "fha" in input.lower() else "Conventional",
        }

    def extract_client_profile(self, input: str, context: AgentContext) -> dict[str, Any]:
        known = context.user_profile
        return {
            "name": known.get("name", "Sample Client"),
            "email": known.get("email", "client@example.com"),
            "income": extract_number(input, "income") or known.get("income", 100_000),
            "credit_score": extract_number(input, "credit") or known.get("credit_score", 720),
            "down_payment": extract_number(input, "down") or known.get("down_payment", 80_000),
            "max_budget": extract_number(input, "budget") or known.get("max_budget", 500_000),
            "current_debts": extract_number(input, "debt") or known.get("current_debts", 2_000),
        }

    def extract_investment_params(self, input: str) -> dict[str, Any]:
        return {
            "purchase_price": extract_number(input, "price") or 300_000,
            "down_payment": extract_number(input, "down") or 60_000,
            "expected_rent": extract_number(input, "rent") or 2_500,
            "property_taxes": extract_number(input, "tax") or 3_600,
            "insurance": extract_number(input, "insurance") or 1_200,
            "maintenance": extract_number(input, "maintenance") or 3_000,
            "vacancy": 5,
        }

    def extract_tax_params(self, input: str) -> dict[str, Any]:
        lowered = input.lower()
        return {
            "purchase_price": extract_number(input, "price") or 400_000,
            "is_investment": "investment" in lowered,
            "is_first_home": "first" in lowered,
        }

    def extract_refinance_params(self, input: str) -> dict[str, Any]:
        return {
            "current_rate": extract_number(input, "rate") or 7.5,
            "current_balance": extract_number(input, "balance") or 350_000,
            "current_payment": extract_number(input, "payment") or 2_500,
            "credit_score": extract_number(input, "credit") or 720,
        }
