"""What-if simulation of price discounts.

All money arithmetic is exact Decimal: a 0 % discount with a 0 % volume
change reproduces the baseline revenue and margin exactly.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from finadvisor.core.exceptions import InsufficientHistoryError, ValidationError
from finadvisor.core.logging import get_logger
from finadvisor.features.sales_events.schemas import SalesEventRecord
from finadvisor.features.simulation.schemas import (
    DiscountSimulation,
    Recommendation,
    UnitCostSource,
)

logger = get_logger(__name__)

HUNDRED = Decimal("100")
CENT = Decimal("0.01")

# Margin drop (percent) beyond which a revenue gain only earns a caution
MARGIN_DROP_CAUTION = -20.0


@dataclass
class ProductBaseline:
    """Completed sales of one product over the baseline window."""

    product_id: str
    revenue: Decimal
    volume: int
    unit_cost: Decimal
    unit_cost_source: UnitCostSource


def build_baseline(
    events: Iterable[SalesEventRecord],
    product_id: str,
    unit_cost: Decimal | None = None,
    cost_ratio: Decimal = Decimal("0.8"),
) -> ProductBaseline:
    """Baseline revenue, volume and unit cost of a product.

    Unit cost precedence: the caller's value, else the quantity-weighted
    mean of the events' unitCost, else the average unit price * cost_ratio.

    Raises:
        InsufficientHistoryError: If the product has no completed sales.
    """
    revenue = Decimal("0")
    volume = 0
    costed_units = 0
    cost_total = Decimal("0")
    for event in events:
        if event.product_id != product_id or not event.is_revenue:
            continue
        revenue += event.total_amount
        volume += event.quantity
        if event.unit_cost is not None:
            costed_units += event.quantity
            cost_total += event.unit_cost * event.quantity

    if volume == 0:
        raise InsufficientHistoryError(
            f"No completed sales for product '{product_id}' in the baseline window",
            details={"productId": product_id},
        )

    if unit_cost is not None:
        cost, source = unit_cost, UnitCostSource.CALLER
    elif costed_units > 0:
        cost, source = cost_total / costed_units, UnitCostSource.EVENTS
    else:
        cost, source = revenue / volume * cost_ratio, UnitCostSource.DEFAULT_RATIO

    return ProductBaseline(
        product_id=product_id,
        revenue=revenue,
        volume=volume,
        unit_cost=cost,
        unit_cost_source=source,
    )


def simulate(
    product_id: str,
    baseline_revenue: Decimal,
    baseline_volume: int,
    discount_percent: Decimal,
    expected_volume_increase_percent: Decimal,
    unit_cost: Decimal,
    unit_cost_source: UnitCostSource = UnitCostSource.CALLER,
) -> DiscountSimulation:
    """Project revenue and margin after a discount.

    Args:
        product_id: Product being simulated.
        baseline_revenue: Revenue in the baseline window.
        baseline_volume: Units sold in the baseline window (> 0).
        discount_percent: Price reduction, 0 <= d < 100.
        expected_volume_increase_percent: Assumed volume change, >= -100.
        unit_cost: Cost per unit.
        unit_cost_source: Provenance of unit_cost, reported back.

    Returns:
        Simulation with recommendation.

    Raises:
        ValidationError: If a percentage or the baseline volume is out of range.
    """
    if not Decimal("0") <= discount_percent < HUNDRED:
        raise ValidationError(
            f"discountPercent must be in [0, 100), got {discount_percent}",
            details={"field": "discountPercent", "value": str(discount_percent)},
        )
    if expected_volume_increase_percent < -HUNDRED:
        raise ValidationError(
            f"expectedVolumeIncrease must be >= -100, got {expected_volume_increase_percent}",
            details={
                "field": "expectedVolumeIncrease",
                "value": str(expected_volume_increase_percent),
            },
        )
    if baseline_volume <= 0:
        raise ValidationError(
            "baselineVolume must be positive",
            details={"field": "baselineVolume", "value": baseline_volume},
        )

    price_factor = 1 - discount_percent / HUNDRED
    volume_factor = 1 + expected_volume_increase_percent / HUNDRED

    baseline_price = baseline_revenue / baseline_volume
    projected_volume = baseline_volume * volume_factor
    projected_revenue = baseline_revenue * price_factor * volume_factor

    baseline_margin = baseline_revenue - unit_cost * baseline_volume
    projected_margin = projected_revenue - unit_cost * projected_volume

    revenue_change = _relative_change(projected_revenue, baseline_revenue)
    margin_change = _relative_change(projected_margin, baseline_margin)
    margin_negative = projected_margin < 0
    recommendation, message = _recommend(
        discount_percent, revenue_change, margin_change, margin_negative
    )

    logger.info(
        "simulation.discount_simulated",
        product_id=product_id,
        discount_percent=str(discount_percent),
        volume_increase_percent=str(expected_volume_increase_percent),
        revenue_change_percent=revenue_change,
        margin_change_percent=margin_change,
        recommendation=recommendation.value,
    )

    return DiscountSimulation(
        product_id=product_id,
        discount_percent=discount_percent,
        expected_volume_increase_percent=expected_volume_increase_percent,
        baseline_revenue=baseline_revenue,
        baseline_volume=baseline_volume,
        baseline_unit_price=baseline_price.quantize(CENT, rounding=ROUND_HALF_UP),
        new_unit_price=(baseline_price * price_factor).quantize(CENT, rounding=ROUND_HALF_UP),
        projected_volume=projected_volume,
        projected_revenue=projected_revenue,
        unit_cost=unit_cost,
        unit_cost_source=unit_cost_source,
        baseline_margin=baseline_margin,
        projected_margin=projected_margin,
        revenue_change_percent=revenue_change if revenue_change is not None else 0.0,
        margin_change_percent=margin_change,
        margin_becomes_negative=margin_negative,
        recommendation=recommendation,
        message=message,
    )


def _relative_change(projected: Decimal, baseline: Decimal) -> float | None:
    if baseline == 0:
        return None if projected != 0 else 0.0
    return round(float((projected - baseline) / abs(baseline) * HUNDRED), 4)


def _recommend(
    discount_percent: Decimal,
    revenue_change: float | None,
    margin_change: float | None,
    margin_negative: bool,
) -> tuple[Recommendation, str]:
    if margin_negative:
        return (
            Recommendation.NOT_RECOMMENDED,
            f"Not recommended: a {discount_percent}% discount pushes the margin below zero",
        )
    if revenue_change is None or revenue_change <= 0:
        return (
            Recommendation.NOT_RECOMMENDED,
            "Not recommended: expected volume increase may not compensate for discount",
        )
    if margin_change is not None and margin_change <= MARGIN_DROP_CAUTION:
        return (
            Recommendation.CAUTION,
            f"Caution: revenue increase of {revenue_change:.1f}% comes with significant "
            f"margin reduction of {abs(margin_change):.1f}%",
        )
    margin_text = f"{margin_change:.1f}%" if margin_change is not None else "no baseline"
    return (
        Recommendation.RECOMMENDED,
        f"Recommended: {discount_percent}% discount could increase revenue by "
        f"{revenue_change:.1f}% with {margin_text} margin impact",
    )
