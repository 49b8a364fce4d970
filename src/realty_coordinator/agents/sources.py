"""
Data sources behind agent tools.

Tools are thin adapters; the numbers they work on come from these sources.
Fixture sources are deterministic so agent behaviour is reproducible in tests
and offline runs. ``HttpMarketSource`` talks to a live market-data service.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from realty_coordinator.config import Settings

logger = logging.getLogger(__name__)


class MortgageRateSource(Protocol):
    async def market_rate(self) -> float:
        """Current 30-year conventional rate, in percent."""
        ...

    async def investment_rate(self) -> float:
        """Current investment-property rate, in percent."""
        ...

    async def lender_offers(self) -> list[dict[str, Any]]:
        """Lender offers as spreads over the market rate."""
        ...


class ProjectSource(Protocol):
    async def get_project(self, project_id: str) -> dict[str, Any]: ...

    async def interested_clients(self, project_id: str) -> list[dict[str, Any]]: ...


class MarketDataSource(Protocol):
    async def market_snapshot(self, location: str, property_type: str) -> dict[str, Any]: ...

    async def rental_snapshot(self, location: str, bedrooms: int) -> dict[str, Any]: ...

    async def economic_indicators(self, location: str) -> dict[str, Any]: ...


class FixtureRateSource:
    """Fixed rates and three reference lenders."""

    MARKET_RATE = 6.5
    INVESTMENT_RATE = 7.0
    LENDERS = (
        {"lender_name": "Prime Mortgage Corp", "spread": -0.125, "term": 30,
         "preapproval_multiplier": 1.1, "closing_cost_ratio": 0.03},
        {"lender_name": "National Bank", "spread": 0.0, "term": 30,
         "preapproval_multiplier": 1.05, "closing_cost_ratio": 0.025},
        {"lender_name": "Community Credit Union", "spread": 0.125, "term": 15,
         "preapproval_multiplier": 1.0, "closing_cost_ratio": 0.02},
    )

    async def market_rate(self) -> float:
        return self.MARKET_RATE

    async def investment_rate(self) -> float:
        return self.INVESTMENT_RATE

    async def lender_offers(self) -> list[dict[str, Any]]:
        return [dict(lender) for lender in self.LENDERS]


class FixtureProjectSource:
    """One reference project ("Sunset Towers") and its interested clients."""

    def __init__(self, project: dict[str, Any] | None = None,
                 clients: list[dict[str, Any]] | None = None) -> None:
        self._project = project or _sunset_towers()
        self._clients = clients if clients is not None else _reference_clients()

    async def get_project(self, project_id: str) -> dict[str, Any]:
        return {**self._project, "id": project_id}

    async def interested_clients(self, project_id: str) -> list[dict[str, Any]]:
        return [{**c, "interested_projects": [project_id]} for c in self._clients]


class FixtureMarketSource:
    """Location-keyed market figures derived from a stable hash of the location."""

    SOURCES = ["fixture"]

    async def market_snapshot(self, location: str, property_type: str) -> dict[str, Any]:
        seed = _seed(location)
        median_price = 250_000 + (seed % 60) * 10_000
        return {
            "location": location,
            "property_type": property_type,
            "median_price": median_price,
            "price_per_sqft": round(median_price / 1_500, 2),
            "days_on_market": 20 + seed % 40,
            "active_listings": 150 + seed % 900,
            "yoy_appreciation": round(((seed >> 4) % 120) / 10 - 2.0, 1),
            "average_rent": round(median_price * 0.0065, 0),
            "sources": list(self.SOURCES),
            "confidence": 0.8,
        }

    async def rental_snapshot(self, location: str, bedrooms: int) -> dict[str, Any]:
        seed = _seed(location)
        base_rent = 1_200 + (seed % 20) * 75
        return {
            "location": location,
            "bedrooms": bedrooms,
            "average_rent": base_rent + 450 * max(bedrooms - 1, 0),
            "vacancy_rate": round(2.0 + (seed >> 3) % 60 / 10, 1),
            "rent_growth": round(((seed >> 6) % 80) / 10 - 1.0, 1),
            "sources": list(self.SOURCES),
        }

    async def economic_indicators(self, location: str) -> dict[str, Any]:
        seed = _seed(location)
        return {
            "location": location,
            "job_growth": round((seed % 50) / 10, 1),
            "population_growth": round(((seed >> 5) % 30) / 10, 1),
            "unemployment_rate": round(3.0 + ((seed >> 7) % 40) / 10, 1),
            "sources": list(self.SOURCES),
        }


class HttpMarketSource:
    """Market data from an HTTP service exposing ``/market``, ``/rentals`` and ``/economics``."""

    def __init__(self, base_url: str, http_client: httpx.AsyncClient | None = None,
                 timeout: float = 15.0) -> None:
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._timeout = timeout

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        if self._http_client is not None:
            response = await self._http_client.get(url, params=params)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def market_snapshot(self, location: str, property_type: str) -> dict[str, Any]:
        return await self._get("/market", {"location": location, "property_type": property_type})

    async def rental_snapshot(self, location: str, bedrooms: int) -> dict[str, Any]:
        return await self._get("/rentals", {"location": location, "bedrooms": bedrooms})

    async def economic_indicators(self, location: str) -> dict[str, Any]:
        return await self._get("/economics", {"location": location})


@dataclass
class DataSources:
    """One source per domain, injected into the agents that need them."""

    rates: MortgageRateSource = field(default_factory=FixtureRateSource)
    projects: ProjectSource = field(default_factory=FixtureProjectSource)
    market: MarketDataSource = field(default_factory=FixtureMarketSource)

    @classmethod
    def fixtures(cls) -> DataSources:
        return cls()

    @classmethod
    def from_settings(cls, settings: Settings) -> DataSources:
        if settings.market_api_url:
            logger.info("Using live market data from %s", settings.market_api_url)
            return cls(market=HttpMarketSource(settings.market_api_url))
        return cls()


def _seed(location: str) -> int:
    digest = hashlib.sha256(location.strip().lower().encode()).hexdigest()
    return int(digest[:8], 16)


def _sunset_towers() -> dict[str, Any]:
    return {
        "id": "sunset-towers",
        "name": "Sunset Towers",
        "location": "Downtown Metropolitan",
        "total_units": 120,
        "completed_units": 45,
        "floor_plans": [
            {"id": "fp1", "name": "1BR Deluxe", "bedrooms": 1, "bathrooms": 1, "sqft": 650,
             "price": 285_000, "available_units": 12,
             "features": ["Balcony", "City View", "Modern Kitchen"]},
            {"id": "fp2", "name": "2BR Premium", "bedrooms": 2, "bathrooms": 2, "sqft": 950,
             "price": 425_000, "available_units": 8,
             "features": ["Balcony", "City View", "Walk-in Closet", "Premium Fixtures"]},
        ],
        "amenities": ["Gym", "Pool", "Concierge", "Parking", "Rooftop Garden"],
        "expected_completion": "2025-12-01",
        "current_phase": "Interior Finishing",
        "price_range": {"min": 285_000, "max": 650_000},
    }


def _reference_clients() -> list[dict[str, Any]]:
    return [
        {"id": "client1", "name": "John Smith", "email": "john.smith@email.com",
         "phone": "+1-555-0123", "budget": 400_000,
         "preferences": {"bedrooms": 2, "balcony": True}, "status": "interested"},
        {"id": "client2", "name": "Sarah Johnson", "email": "sarah.j@email.com",
         "phone": "+1-555-0124", "budget": 300_000,
         "preferences": {"bedrooms": 1, "city_view": True}, "status": "prospect"},
        {"id": "client3", "name": "Michael Chen", "email": "michael.chen@email.com",
         "phone": "+1-555-0125", "budget": 500_000,
         "preferences": {"bedrooms": 2, "parking": True}, "status": "reserved"},
    ]
