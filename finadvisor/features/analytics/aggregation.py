"""Time-bucketed aggregation of sales events.

Buckets cover every period between the requested start and end dates,
zero-filled when empty; the first and last buckets are clipped to the
range. Sums are exact Decimals, so bucket revenue always adds up to the
revenue of the completed events in range.
"""

from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from finadvisor.core.exceptions import ValidationError
from finadvisor.core.logging import get_logger
from finadvisor.features.analytics.schemas import (
    Granularity,
    PeriodComparison,
    SalesSummary,
    TimeSeriesPoint,
)
from finadvisor.features.sales_events.schemas import SalesEventRecord
from finadvisor.shared.utils import percent_change, previous_window

logger = get_logger(__name__)

CENT = Decimal("0.01")
DEFAULT_COST_RATIO = Decimal("0.8")


# =============================================================================
# Bucket arithmetic
# =============================================================================


def period_start(day: date, granularity: Granularity) -> date:
    """First day of the calendar period containing `day`."""
    if granularity == Granularity.DAILY:
        return day
    if granularity == Granularity.WEEKLY:
        return day - timedelta(days=day.weekday())
    if granularity == Granularity.MONTHLY:
        return day.replace(day=1)
    if granularity == Granularity.QUARTERLY:
        return day.replace(month=3 * ((day.month - 1) // 3) + 1, day=1)
    return day.replace(month=1, day=1)


def next_period_start(start: date, granularity: Granularity) -> date:
    """First day of the period after the one starting at `start`."""
    if granularity == Granularity.DAILY:
        return start + timedelta(days=1)
    if granularity == Granularity.WEEKLY:
        return start + timedelta(days=7)
    if granularity == Granularity.YEARLY:
        return start.replace(year=start.year + 1)

    months = 1 if granularity == Granularity.MONTHLY else 3
    month_index = start.month - 1 + months
    return date(start.year + month_index // 12, month_index % 12 + 1, 1)


def iter_buckets(
    start: date, end: date, granularity: Granularity
) -> Iterator[tuple[date, date]]:
    """Yield (bucket_start, bucket_end) pairs covering [start, end], clipped."""
    current = period_start(start, granularity)
    while current <= end:
        following = next_period_start(current, granularity)
        yield max(current, start), min(following - timedelta(days=1), end)
        current = following


# =============================================================================
# Per-event figures
# =============================================================================


def event_margin(event: SalesEventRecord, cost_ratio: Decimal = DEFAULT_COST_RATIO) -> Decimal:
    """Margin of one event: netAmount - quantity * unit cost.

    Events without a unit cost are costed at unitPrice * cost_ratio.
    """
    unit_cost = event.unit_cost if event.unit_cost is not None else event.unit_price * cost_ratio
    return event.net_amount - event.quantity * unit_cost


def average_order_value(revenue: Decimal, order_count: int) -> Decimal:
    """Revenue per order rounded to cents; 0 when there are no orders."""
    if order_count == 0:
        return Decimal("0.00")
    return (revenue / order_count).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class _Totals:
    revenue: Decimal = Decimal("0")
    units: int = 0
    order_count: int = 0
    margin: Decimal = Decimal("0")
    revenue_by_product: dict[str, Decimal] = field(default_factory=lambda: defaultdict(Decimal))

    def add(self, event: SalesEventRecord, cost_ratio: Decimal) -> None:
        self.revenue += event.total_amount
        self.units += event.quantity
        self.order_count += 1
        self.margin += event_margin(event, cost_ratio)
        self.revenue_by_product[event.product_id] += event.total_amount


def _in_range(
    events: Iterable[SalesEventRecord], start: date, end: date
) -> Iterator[SalesEventRecord]:
    for event in events:
        if event.is_revenue and start <= event.event_date <= end:
            yield event


# =============================================================================
# Aggregation
# =============================================================================


def aggregate(
    events: Iterable[SalesEventRecord],
    granularity: Granularity,
    start: date,
    end: date,
    cost_ratio: Decimal = DEFAULT_COST_RATIO,
) -> list[TimeSeriesPoint]:
    """Bucket completed events into a zero-filled time series.

    Args:
        events: Events to aggregate; non-completed and out-of-range events
            are ignored.
        granularity: Bucket size.
        start: First day of the series (inclusive).
        end: Last day of the series (inclusive).
        cost_ratio: Unit cost as a fraction of unit price when unknown.

    Returns:
        One point per bucket in chronological order.

    Raises:
        ValidationError: If start is after end.
    """
    if start > end:
        raise ValidationError(
            f"startDate {start} is after endDate {end}",
            details={"startDate": start.isoformat(), "endDate": end.isoformat()},
        )

    buckets = list(iter_buckets(start, end, granularity))
    totals: dict[date, _Totals] = {bucket_start: _Totals() for bucket_start, _ in buckets}

    for event in _in_range(events, start, end):
        key = max(period_start(event.event_date, granularity), start)
        totals[key].add(event, cost_ratio)

    points = [
        TimeSeriesPoint(
            bucket_start=bucket_start,
            bucket_end=bucket_end,
            revenue=totals[bucket_start].revenue,
            units=totals[bucket_start].units,
            order_count=totals[bucket_start].order_count,
            margin=totals[bucket_start].margin,
            average_order_value=average_order_value(
                totals[bucket_start].revenue, totals[bucket_start].order_count
            ),
        )
        for bucket_start, bucket_end in buckets
    ]

    logger.debug(
        "analytics.timeseries_aggregated",
        granularity=granularity.value,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        bucket_count=len(points),
    )
    return points


def summarize_sales(
    events: Iterable[SalesEventRecord],
    start: date,
    end: date,
    previous_events: Iterable[SalesEventRecord] | None = None,
    cost_ratio: Decimal = DEFAULT_COST_RATIO,
) -> SalesSummary:
    """Headline figures for [start, end], optionally compared with the prior window.

    Args:
        events: Events covering the window.
        start: Window start (inclusive).
        end: Window end (inclusive).
        previous_events: Events covering the preceding window of equal
            length; when given, a comparison is attached.
        cost_ratio: Unit cost as a fraction of unit price when unknown.

    Returns:
        Sales summary.
    """
    current = _Totals()
    for event in _in_range(events, start, end):
        current.add(event, cost_ratio)

    top_product = None
    if current.revenue_by_product:
        # Highest revenue, ties by ascending product id
        top_product = min(
            current.revenue_by_product.items(),
            key=lambda item: (-item[1], item[0]),
        )[0]

    comparison = None
    if previous_events is not None:
        prev_start, prev_end = previous_window(start, end)
        previous = _Totals()
        for event in _in_range(previous_events, prev_start, prev_end):
            previous.add(event, cost_ratio)
        comparison = PeriodComparison(
            previous_start_date=prev_start,
            previous_end_date=prev_end,
            previous_revenue=previous.revenue,
            revenue_growth=percent_change(current.revenue, previous.revenue),
            order_growth=percent_change(current.order_count, previous.order_count),
            margin_change=round(
                _margin_percent(current) - _margin_percent(previous),
                4,
            ),
        )

    return SalesSummary(
        start_date=start,
        end_date=end,
        total_revenue=current.revenue,
        total_orders=current.order_count,
        total_units=current.units,
        total_margin=current.margin,
        average_order_value=average_order_value(current.revenue, current.order_count),
        margin_percent=round(_margin_percent(current), 4),
        top_product=top_product,
        previous_period_comparison=comparison,
    )


def _margin_percent(totals: _Totals) -> float:
    if totals.revenue == 0:
        return 0.0
    return float(totals.margin / totals.revenue * 100)
