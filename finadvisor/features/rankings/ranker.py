"""Per-product metrics and deterministic rankings.

Ties are broken by ascending product id, so identical input always yields
an identical ranking.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from finadvisor.features.analytics.aggregation import DEFAULT_COST_RATIO, event_margin
from finadvisor.features.rankings.schemas import ProductMetrics, RankedProduct, SortBy
from finadvisor.features.sales_events.schemas import SalesEventRecord
from finadvisor.shared.utils import percent_change


@dataclass
class _ProductTotals:
    category: str | None = None
    revenue: Decimal = Decimal("0")
    units: int = 0
    order_count: int = 0
    margin: Decimal = Decimal("0")


def _totals_by_product(
    events: Iterable[SalesEventRecord], cost_ratio: Decimal
) -> dict[str, _ProductTotals]:
    totals: dict[str, _ProductTotals] = {}
    for event in events:
        if not event.is_revenue:
            continue
        product = totals.setdefault(event.product_id, _ProductTotals())
        if event.product_category is not None:
            product.category = event.product_category
        product.revenue += event.total_amount
        product.units += event.quantity
        product.order_count += 1
        product.margin += event_margin(event, cost_ratio)
    return totals


def summarize_products(
    current_events: Iterable[SalesEventRecord],
    previous_events: Iterable[SalesEventRecord],
    cost_ratio: Decimal = DEFAULT_COST_RATIO,
) -> list[ProductMetrics]:
    """Build metrics for every product sold in the current window.

    Args:
        current_events: Events of the current window (chronological).
        previous_events: Events of the preceding window of equal length.
        cost_ratio: Unit cost as a fraction of unit price when unknown.

    Returns:
        Metrics ordered by product id.
    """
    current = _totals_by_product(current_events, cost_ratio)
    previous = _totals_by_product(previous_events, cost_ratio)

    return [
        ProductMetrics(
            product_id=product_id,
            category=totals.category,
            revenue=totals.revenue,
            units=totals.units,
            order_count=totals.order_count,
            margin=totals.margin,
            growth=percent_change(
                totals.revenue,
                previous[product_id].revenue if product_id in previous else Decimal("0"),
            ),
        )
        for product_id, totals in sorted(current.items())
    ]


def rank(
    metrics: Iterable[ProductMetrics],
    sort_by: SortBy,
    limit: int,
    ascending: bool = False,
    min_revenue: Decimal | None = None,
    category: str | None = None,
) -> list[RankedProduct]:
    """Rank products by a metric.

    Args:
        metrics: Product metrics to rank.
        sort_by: Metric to rank by.
        limit: Maximum number of products returned.
        ascending: Lowest first (bottom products) instead of highest first.
        min_revenue: Drop products with revenue below this value.
        category: Keep only products in this category.

    Returns:
        Up to `limit` products with 1-based ranks.
    """
    candidates = [
        m
        for m in metrics
        if (min_revenue is None or m.revenue >= min_revenue)
        and (category is None or m.category == category)
    ]

    def sort_key(m: ProductMetrics) -> tuple[Decimal | float | int, str]:
        value = getattr(m, sort_by.value)
        return (value if ascending else -value, m.product_id)

    ordered = sorted(candidates, key=sort_key)[:limit]
    return [
        RankedProduct(**m.model_dump(), rank=position)
        for position, m in enumerate(ordered, start=1)
    ]
