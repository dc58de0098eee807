"""Pydantic schemas for time-bucketed sales metrics.

These read models are derived from the sales event store on every request
and carry rich descriptions for LLM tool-calling.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import ConfigDict, Field

from finadvisor.shared.schemas import CamelModel

# =============================================================================
# Enums
# =============================================================================


class Granularity(str, Enum):
    """Bucket size for time series.

    Weeks are ISO weeks starting on Monday; quarters start in January,
    April, July and October.
    """

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class Metric(str, Enum):
    """Per-bucket metric that can be analysed for anomalies."""

    REVENUE = "revenue"
    UNITS = "units"
    ORDERS = "orders"
    MARGIN = "margin"


# =============================================================================
# Time Series
# =============================================================================


class TimeSeriesPoint(CamelModel):
    """Aggregated metrics for one time bucket.

    Only completed-payment events contribute. Empty buckets are present
    with zero values.
    """

    model_config = ConfigDict(frozen=True)

    bucket_start: date = Field(..., description="First day of the bucket (inclusive)")
    bucket_end: date = Field(..., description="Last day of the bucket (inclusive)")
    revenue: Decimal = Field(..., description="Sum of totalAmount of completed events")
    units: int = Field(..., ge=0, description="Sum of quantity")
    order_count: int = Field(..., ge=0, description="Number of completed events")
    margin: Decimal = Field(
        ...,
        description="Sum of netAmount - quantity * unitCost; unitCost falls back to "
        "unitPrice * default cost ratio when unknown",
    )
    average_order_value: Decimal = Field(
        ...,
        description="revenue / orderCount rounded to cents; 0 for empty buckets",
    )

    def metric_value(self, metric: Metric) -> float:
        """Value of a metric in this bucket as a float."""
        if metric == Metric.REVENUE:
            return float(self.revenue)
        if metric == Metric.UNITS:
            return float(self.units)
        if metric == Metric.ORDERS:
            return float(self.order_count)
        return float(self.margin)


class TimeSeriesResponse(CamelModel):
    """Result of the fetch_timeseries tool."""

    granularity: Granularity = Field(..., description="Bucket size")
    start_date: date = Field(..., description="Range start (inclusive)")
    end_date: date = Field(..., description="Range end (inclusive)")
    artisan_id: str | None = Field(None, description="Artisan filter applied")
    product_id: str | None = Field(None, description="Product filter applied")
    points: list[TimeSeriesPoint] = Field(..., description="Buckets in chronological order")


# =============================================================================
# Sales Summary
# =============================================================================


class PeriodComparison(CamelModel):
    """Change versus the preceding window of equal length."""

    previous_start_date: date = Field(..., description="Previous window start")
    previous_end_date: date = Field(..., description="Previous window end")
    previous_revenue: Decimal = Field(..., description="Revenue in the previous window")
    revenue_growth: float = Field(
        ...,
        description="Percent revenue change; 0 when both windows are empty, "
        "100 when only the previous window is empty",
    )
    order_growth: float = Field(..., description="Percent change in completed orders")
    margin_change: float = Field(
        ...,
        description="Change in margin percent, in percentage points",
    )


class SalesSummary(CamelModel):
    """Headline figures for a window of sales."""

    start_date: date = Field(..., description="Window start (inclusive)")
    end_date: date = Field(..., description="Window end (inclusive)")
    total_revenue: Decimal = Field(..., description="Revenue of completed events")
    total_orders: int = Field(..., ge=0, description="Completed events")
    total_units: int = Field(..., ge=0, description="Units sold")
    total_margin: Decimal = Field(..., description="Margin of completed events")
    average_order_value: Decimal = Field(..., description="Revenue per order, 0 if none")
    margin_percent: float = Field(..., description="Margin as a percent of revenue, 0 if none")
    top_product: str | None = Field(None, description="Product with the highest revenue")
    previous_period_comparison: PeriodComparison | None = Field(
        None,
        description="Comparison with the preceding window (when requested)",
    )
