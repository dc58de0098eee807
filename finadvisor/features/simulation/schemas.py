"""Pydantic schemas for discount impact simulation."""

from decimal import Decimal
from enum import Enum

from pydantic import Field

from finadvisor.shared.schemas import CamelModel


class Recommendation(str, Enum):
    """Verdict on a simulated discount."""

    RECOMMENDED = "recommended"
    CAUTION = "caution"
    NOT_RECOMMENDED = "not_recommended"


class UnitCostSource(str, Enum):
    """Where the unit cost used for margins came from."""

    CALLER = "caller"
    EVENTS = "events"
    DEFAULT_RATIO = "default_ratio"


class DiscountSimulation(CamelModel):
    """Projected effect of a price discount on revenue and margin.

    Revenue and margin figures are exact decimals; percentages are floats.
    """

    product_id: str = Field(..., description="Simulated product")
    discount_percent: Decimal = Field(..., description="Price reduction in percent")
    expected_volume_increase_percent: Decimal = Field(
        ...,
        description="Assumed change in units sold, in percent",
    )
    baseline_revenue: Decimal = Field(..., description="Revenue in the baseline window")
    baseline_volume: int = Field(..., ge=0, description="Units sold in the baseline window")
    baseline_unit_price: Decimal = Field(..., description="Average realised unit price")
    new_unit_price: Decimal = Field(..., description="Unit price after the discount")
    projected_volume: Decimal = Field(..., description="Units after the volume change")
    projected_revenue: Decimal = Field(
        ...,
        description="baselineRevenue * (1 - discount/100) * (1 + volumeIncrease/100)",
    )
    unit_cost: Decimal = Field(..., description="Cost per unit used for margins")
    unit_cost_source: UnitCostSource = Field(..., description="caller, events or default_ratio")
    baseline_margin: Decimal = Field(..., description="baselineRevenue - unitCost * baselineVolume")
    projected_margin: Decimal = Field(
        ...,
        description="projectedRevenue - unitCost * projectedVolume",
    )
    revenue_change_percent: float = Field(..., description="Percent change in revenue")
    margin_change_percent: float | None = Field(
        ...,
        description="Percent change in margin relative to |baselineMargin|; "
        "null when the baseline margin is 0",
    )
    margin_becomes_negative: bool = Field(..., description="Projected margin is below zero")
    recommendation: Recommendation = Field(..., description="Verdict")
    message: str = Field(..., description="Human-readable explanation of the verdict")
