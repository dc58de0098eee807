"""Analytics module: time-bucketed sales metrics and summaries.

Aggregations are pure functions over a snapshot of sales events; the
advisor facade reads the snapshot and exposes the results as tools.
"""

from finadvisor.features.analytics.aggregation import (
    aggregate,
    event_margin,
    iter_buckets,
    period_start,
    summarize_sales,
)
from finadvisor.features.analytics.schemas import (
    Granularity,
    Metric,
    PeriodComparison,
    SalesSummary,
    TimeSeriesPoint,
    TimeSeriesResponse,
)

__all__ = [
    "Granularity",
    "Metric",
    "PeriodComparison",
    "SalesSummary",
    "TimeSeriesPoint",
    "TimeSeriesResponse",
    "aggregate",
    "event_margin",
    "iter_buckets",
    "period_start",
    "summarize_sales",
]
