"""Coordination strategies."""

from realty_coordinator.strategies.base import BaseStrategy
from realty_coordinator.strategies.parallel import ParallelStrategy
from realty_coordinator.strategies.sequential import SequentialStrategy
from realty_coordinator.strategies.smart_routing import SmartRoutingStrategy

STRATEGIES: dict[str, type[BaseStrategy]] = {
    "sequential": SequentialStrategy,
    "parallel": ParallelStrategy,
    "smart-routing": SmartRoutingStrategy,
}

__all__ = [
    "BaseStrategy",
    "SequentialStrategy",
    "ParallelStrategy",
    "SmartRoutingStrategy",
    "STRATEGIES",
]
