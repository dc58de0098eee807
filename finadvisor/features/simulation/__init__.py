"""Discount impact simulation."""

from finadvisor.features.simulation.schemas import (
    DiscountSimulation,
    Recommendation,
    UnitCostSource,
)
from finadvisor.features.simulation.simulator import ProductBaseline, build_baseline, simulate

__all__ = [
    "DiscountSimulation",
    "ProductBaseline",
    "Recommendation",
    "UnitCostSource",
    "build_baseline",
    "simulate",
]
