"""Tool request and result schemas for the finance advisor.

Each tool has one request model; the models form a discriminated union on
`tool` so parameters are validated before anything is read from the store.
The descriptions double as the JSON schemas offered to LLM tool-calling.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import ConfigDict, Field, TypeAdapter, model_validator

from finadvisor.features.analytics.schemas import Granularity, Metric, SalesSummary
from finadvisor.features.forecasting.schemas import ForecastResult, NamedHorizon
from finadvisor.features.rankings.schemas import SortBy
from finadvisor.shared.schemas import CamelModel, ErrorDetail


class ToolName(str, Enum):
    """Tools exposed by the finance advisor."""

    FETCH_TIMESERIES = "fetch_timeseries"
    TOP_PRODUCTS = "top_products"
    BOTTOM_PRODUCTS = "bottom_products"
    FORECAST_REVENUE = "forecast_revenue"
    DETECT_ANOMALIES = "detect_anomalies"
    SIMULATE_DISCOUNT = "simulate_discount"
    SALES_SUMMARY = "sales_summary"


class WindowRange(str, Enum):
    """Trailing windows ending at asOf: 7, 30, 90 or 365 days, inclusive."""

    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


# =============================================================================
# Tool Requests
# =============================================================================


class ToolRequestBase(CamelModel):
    """Parameters shared by every tool."""

    model_config = ConfigDict(extra="forbid")

    as_of: date | None = Field(
        None,
        description="Last day of the analysis window (YYYY-MM-DD); default today (UTC)",
    )
    timeout_seconds: float | None = Field(
        None,
        gt=0,
        le=300,
        description="Time budget for reading sales data; default from settings",
    )


class FetchTimeseriesRequest(ToolRequestBase):
    """Fetch revenue, units, orders and margin per time bucket."""

    tool: Literal["fetch_timeseries"] = "fetch_timeseries"
    time_range: Granularity = Field(
        ...,
        description="Bucket size: daily, weekly (ISO weeks), monthly, quarterly or yearly",
    )
    artisan_id: str | None = Field(None, description="Only this artisan's sales")
    product_id: str | None = Field(None, description="Only this product's sales")
    start_date: date | None = Field(
        None,
        description="First day (inclusive); default depends on timeRange",
    )
    end_date: date | None = Field(None, description="Last day (inclusive); default asOf")

    @model_validator(mode="after")
    def validate_range(self) -> FetchTimeseriesRequest:
        """Ensure startDate is not after endDate."""
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("startDate must not be after endDate")
        return self


class TopProductsRequest(ToolRequestBase):
    """Rank the best-performing products."""

    tool: Literal["top_products"] = "top_products"
    time_range: WindowRange = Field(..., description="week, month, quarter or year")
    sort_by: SortBy = Field(..., description="revenue, units, growth or margin")
    category: str | None = Field(None, description="Only products in this category")
    limit: int | None = Field(
        None, ge=1, description="Number of products; at most the configured maximum (100)"
    )
    min_revenue: Decimal | None = Field(None, ge=0, description="Minimum revenue to be ranked")
    artisan_id: str | None = Field(None, description="Only this artisan's products")


class BottomProductsRequest(ToolRequestBase):
    """Rank the lowest-revenue products."""

    tool: Literal["bottom_products"] = "bottom_products"
    time_range: WindowRange = Field(..., description="week, month, quarter or year")
    category: str | None = Field(None, description="Only products in this category")
    limit: int | None = Field(
        None, ge=1, description="Number of products; at most the configured maximum (100)"
    )
    min_revenue: Decimal | None = Field(None, ge=0, description="Minimum revenue to be ranked")
    artisan_id: str | None = Field(None, description="Only this artisan's products")


class ForecastRevenueRequest(ToolRequestBase):
    """Forecast revenue with a prediction band."""

    tool: Literal["forecast_revenue"] = "forecast_revenue"
    horizon: int | NamedHorizon = Field(
        ...,
        description="Number of periods, or week/month/quarter",
    )
    artisan_id: str | None = Field(None, description="Only this artisan's sales")
    product_id: str | None = Field(None, description="Only this product's sales")
    confidence: float | None = Field(
        None,
        ge=0.8,
        le=0.95,
        description="Band confidence level; default 0.95",
    )
    granularity: Granularity = Field(Granularity.DAILY, description="Forecast period size")


class DetectAnomaliesRequest(ToolRequestBase):
    """Find days whose metric deviates from the trailing week."""

    tool: Literal["detect_anomalies"] = "detect_anomalies"
    metric: Metric = Field(..., description="revenue, units, orders or margin")
    time_range: WindowRange = Field(..., description="week, month, quarter or year")
    artisan_id: str | None = Field(None, description="Only this artisan's sales")
    product_id: str | None = Field(None, description="Only this product's sales")
    threshold: float | None = Field(None, gt=0, description="z-score threshold; default 2.0")


class SimulateDiscountRequest(ToolRequestBase):
    """Project revenue and margin after a discount."""

    tool: Literal["simulate_discount"] = "simulate_discount"
    product_id: str = Field(..., min_length=1, description="Product to simulate")
    discount_percent: Decimal = Field(..., ge=0, lt=100, description="Price reduction in percent")
    expected_volume_increase: Decimal = Field(
        Decimal("0"),
        ge=-100,
        description="Assumed change in units sold, in percent",
    )
    time_range: WindowRange = Field(WindowRange.MONTH, description="Baseline window")
    unit_cost: Decimal | None = Field(None, ge=0, description="Cost per unit, if known")


class SalesSummaryRequest(ToolRequestBase):
    """Headline sales figures for a window."""

    tool: Literal["sales_summary"] = "sales_summary"
    time_range: WindowRange = Field(..., description="week, month, quarter or year")
    artisan_id: str | None = Field(None, description="Only this artisan's sales")
    include_comparisons: bool = Field(True, description="Compare with the previous window")
    include_projections: bool = Field(False, description="Attach a revenue forecast")


ToolRequest = Annotated[
    FetchTimeseriesRequest
    | TopProductsRequest
    | BottomProductsRequest
    | ForecastRevenueRequest
    | DetectAnomaliesRequest
    | SimulateDiscountRequest
    | SalesSummaryRequest,
    Field(discriminator="tool"),
]

TOOL_REQUEST_ADAPTER: TypeAdapter[ToolRequest] = TypeAdapter(ToolRequest)

TOOL_REQUEST_MODELS: dict[ToolName, type[ToolRequestBase]] = {
    ToolName.FETCH_TIMESERIES: FetchTimeseriesRequest,
    ToolName.TOP_PRODUCTS: TopProductsRequest,
    ToolName.BOTTOM_PRODUCTS: BottomProductsRequest,
    ToolName.FORECAST_REVENUE: ForecastRevenueRequest,
    ToolName.DETECT_ANOMALIES: DetectAnomaliesRequest,
    ToolName.SIMULATE_DISCOUNT: SimulateDiscountRequest,
    ToolName.SALES_SUMMARY: SalesSummaryRequest,
}


# =============================================================================
# Results
# =============================================================================


class SalesSummaryResult(SalesSummary):
    """Sales summary with an optional revenue projection."""

    projection: ForecastResult | None = Field(
        None,
        description="Revenue forecast for the next window (when requested)",
    )


class ToolResult(CamelModel):
    """Envelope returned by every tool call.

    Exactly one of `result` and `error` is set.
    """

    success: bool = Field(..., description="Whether the tool ran successfully")
    tool: str = Field(..., description="Tool name as requested")
    result: dict[str, Any] | None = Field(None, description="Tool output (camelCase JSON)")
    error: ErrorDetail | None = Field(None, description="Error details on failure")
    duration_ms: float = Field(0.0, ge=0, description="Execution time in milliseconds")
    http_status: int = Field(200, exclude=True)


class ToolDefinition(CamelModel):
    """JSON schema of one tool, for agent tool-calling."""

    name: ToolName = Field(..., description="Tool name")
    description: str = Field(..., description="What the tool does")
    parameters: dict[str, Any] = Field(..., description="JSON schema of the parameters")


class ToolListResponse(CamelModel):
    """Response body for GET /advisor/tools."""

    tools: list[ToolDefinition] = Field(..., description="Available tools")
