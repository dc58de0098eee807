"""Finance advisor facade: one entry point for every analytics tool.

Orchestrates:
- Parameter validation against the per-tool request models
- Windowed reads from the sales event store under a time budget
- Dispatch to aggregation, ranking, forecasting, anomaly and simulation code
- Wrapping every outcome in a `{success, tool, result|error}` envelope

CRITICAL: The facade never mutates state; it only reads from the store.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from finadvisor.core.config import Settings, get_settings
from finadvisor.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    FinanceAdvisorError,
    ServiceUnavailableError,
    ValidationError,
)
from finadvisor.core.logging import get_logger
from finadvisor.features.advisor.schemas import (
    TOOL_REQUEST_ADAPTER,
    TOOL_REQUEST_MODELS,
    BottomProductsRequest,
    DetectAnomaliesRequest,
    FetchTimeseriesRequest,
    ForecastRevenueRequest,
    SalesSummaryRequest,
    SalesSummaryResult,
    SimulateDiscountRequest,
    ToolDefinition,
    ToolName,
    ToolRequestBase,
    ToolResult,
    TopProductsRequest,
    WindowRange,
)
from finadvisor.features.analytics.aggregation import aggregate, summarize_sales
from finadvisor.features.analytics.schemas import Granularity, TimeSeriesResponse
from finadvisor.features.anomalies.detector import AnomalyDetector
from finadvisor.features.anomalies.schemas import AnomalyReport
from finadvisor.features.forecasting.schemas import ForecastResult, NamedHorizon
from finadvisor.features.forecasting.service import (
    RevenueForecaster,
    history_start,
    last_complete_day,
)
from finadvisor.features.rankings.ranker import rank, summarize_products
from finadvisor.features.rankings.schemas import ProductRanking, SortBy
from finadvisor.features.sales_events.schemas import SalesEventRecord
from finadvisor.features.sales_events.service import SalesEventReader
from finadvisor.features.simulation.schemas import DiscountSimulation
from finadvisor.features.simulation.simulator import build_baseline, simulate
from finadvisor.shared.utils import previous_window, utc_today, window_bounds

logger = get_logger(__name__)

# Default fetch_timeseries history, in buckets, when no startDate is given
DEFAULT_SERIES_PERIODS: dict[Granularity, int] = {
    Granularity.DAILY: 30,
    Granularity.WEEKLY: 12,
    Granularity.MONTHLY: 12,
    Granularity.QUARTERLY: 8,
    Granularity.YEARLY: 5,
}

# Projection attached to sales_summary for each window
PROJECTION_HORIZONS: dict[WindowRange, int | NamedHorizon] = {
    WindowRange.WEEK: NamedHorizon.WEEK,
    WindowRange.MONTH: NamedHorizon.MONTH,
    WindowRange.QUARTER: NamedHorizon.QUARTER,
    WindowRange.YEAR: 365,
}

# HTTP status for each envelope error code
ERROR_STATUS: dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "CONFIGURATION_ERROR": 400,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "DATA_INTEGRITY_ERROR": 422,
    "INSUFFICIENT_HISTORY": 422,
    "UPSTREAM_FETCH_ERROR": 502,
    "SERVICE_UNAVAILABLE": 503,
}

TOOL_DESCRIPTIONS: dict[ToolName, str] = {
    ToolName.FETCH_TIMESERIES: (
        "Fetch revenue, units, order count, margin and average order value per "
        "day, ISO week, month, quarter or year. Empty buckets are returned as zeros."
    ),
    ToolName.TOP_PRODUCTS: (
        "Rank the best products of the last week, month, quarter or year by "
        "revenue, units, growth or margin."
    ),
    ToolName.BOTTOM_PRODUCTS: (
        "Rank the lowest-revenue products of the last week, month, quarter or year."
    ),
    ToolName.FORECAST_REVENUE: (
        "Forecast revenue for a number of periods (or a week/month/quarter) with "
        "a prediction band and a trend direction."
    ),
    ToolName.DETECT_ANOMALIES: (
        "Find days whose revenue, units, orders or margin deviate from the "
        "trailing 7-day mean by more than a z-score threshold."
    ),
    ToolName.SIMULATE_DISCOUNT: (
        "Project a product's revenue and margin after a price discount, given an "
        "assumed change in units sold, and recommend whether to apply it."
    ),
    ToolName.SALES_SUMMARY: (
        "Headline revenue, orders, units, margin and top product for a window, "
        "optionally compared with the previous window and with a revenue projection."
    ),
}


class FinanceAdvisorService:
    """Read-only analytics facade over a sales event reader.

    Construct one per request (or per agent session) with the reader it
    should query; nothing is cached between calls.
    """

    def __init__(self, reader: SalesEventReader, settings: Settings | None = None) -> None:
        """Initialize the advisor.

        Args:
            reader: Read side of the sales event store.
            settings: Settings override (defaults to the cached settings).
        """
        self.reader = reader
        self.settings = settings or get_settings()
        self._handlers: dict[ToolName, Callable[[Any], Awaitable[BaseModel]]] = {
            ToolName.FETCH_TIMESERIES: self.fetch_timeseries,
            ToolName.TOP_PRODUCTS: self.top_products,
            ToolName.BOTTOM_PRODUCTS: self.bottom_products,
            ToolName.FORECAST_REVENUE: self.forecast_revenue,
            ToolName.DETECT_ANOMALIES: self.detect_anomalies,
            ToolName.SIMULATE_DISCOUNT: self.simulate_discount,
            ToolName.SALES_SUMMARY: self.sales_summary,
        }

    @property
    def cost_ratio(self) -> Decimal:
        """Default unit cost as a fraction of unit price."""
        return Decimal(str(self.settings.discount_default_cost_ratio))

    # -------------------------------------------------------------------------
    # Envelope
    # -------------------------------------------------------------------------

    async def execute(self, tool: str, params: dict[str, Any] | None = None) -> ToolResult:
        """Validate parameters, run a tool and wrap the outcome.

        Never raises: every failure becomes an error envelope.

        Args:
            tool: Tool name (see ToolName).
            params: Tool parameters in camelCase or snake_case.

        Returns:
            ToolResult with `result` on success or `error` on failure.
        """
        started = time.perf_counter()
        try:
            name = self._resolve_tool(tool)
            request = TOOL_REQUEST_ADAPTER.validate_python({**(params or {}), "tool": name.value})
            output = await self._handlers[name](request)
            envelope = ToolResult(
                success=True,
                tool=tool,
                result=output.model_dump(mode="json", by_alias=True),
            )
        except PydanticValidationError as e:
            envelope = _error_envelope(
                tool,
                code="VALIDATION_ERROR",
                message=f"Invalid parameters for tool '{tool}'",
                details={"errors": _field_errors(e)},
            )
        except FinanceAdvisorError as e:
            envelope = _error_envelope(tool, **e.to_payload())
        except Exception as e:
            logger.error(
                "advisor.tool_failed",
                tool=tool,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            envelope = _error_envelope(
                tool,
                code="INTERNAL_ERROR",
                message="An unexpected error occurred",
                details={"errorType": type(e).__name__},
            )

        envelope.duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "advisor.tool_executed",
            tool=tool,
            success=envelope.success,
            error_code=envelope.error.code if envelope.error else None,
            duration_ms=envelope.duration_ms,
        )
        return envelope

    def tool_definitions(self) -> list[ToolDefinition]:
        """JSON schemas of every tool's parameters, for agent tool-calling."""
        definitions = []
        for name, model in TOOL_REQUEST_MODELS.items():
            schema = model.model_json_schema(by_alias=True)
            schema.get("properties", {}).pop("tool", None)
            definitions.append(
                ToolDefinition(
                    name=name,
                    description=TOOL_DESCRIPTIONS[name],
                    parameters=schema,
                )
            )
        return definitions

    # -------------------------------------------------------------------------
    # Tools
    # -------------------------------------------------------------------------

    async def fetch_timeseries(self, request: FetchTimeseriesRequest) -> TimeSeriesResponse:
        """Aggregated time series for a date range."""
        end = request.end_date or self._as_of(request)
        start = request.start_date or history_start(
            end, request.time_range, DEFAULT_SERIES_PERIODS[request.time_range]
        )
        events = await self._read(
            request, start, end, artisan_id=request.artisan_id, product_id=request.product_id
        )
        return TimeSeriesResponse(
            granularity=request.time_range,
            start_date=start,
            end_date=end,
            artisan_id=request.artisan_id,
            product_id=request.product_id,
            points=aggregate(events, request.time_range, start, end, self.cost_ratio),
        )

    async def top_products(self, request: TopProductsRequest) -> ProductRanking:
        """Best products of the window by the requested metric."""
        return await self._rank_products(request, request.sort_by, ascending=False)

    async def bottom_products(self, request: BottomProductsRequest) -> ProductRanking:
        """Lowest-revenue products of the window."""
        return await self._rank_products(request, SortBy.REVENUE, ascending=True)

    async def forecast_revenue(self, request: ForecastRevenueRequest) -> ForecastResult:
        """Revenue forecast from the complete periods up to asOf."""
        return await self._forecast(
            request,
            horizon=request.horizon,
            granularity=request.granularity,
            confidence=request.confidence,
            artisan_id=request.artisan_id,
            product_id=request.product_id,
        )

    async def detect_anomalies(self, request: DetectAnomaliesRequest) -> AnomalyReport:
        """Daily anomalies of a metric within the window."""
        detector = AnomalyDetector(
            threshold=request.threshold or self.settings.anomaly_default_threshold,
            window=self.settings.anomaly_window_size,
            inclusive=self.settings.anomaly_inclusive_threshold,
        )
        start, end = window_bounds(request.time_range.value, self._as_of(request))
        # Leading days give the first day of the window a full trailing window
        series_start = start - timedelta(days=detector.window)

        events = await self._read(
            request,
            series_start,
            end,
            artisan_id=request.artisan_id,
            product_id=request.product_id,
        )
        points = aggregate(events, Granularity.DAILY, series_start, end, self.cost_ratio)

        return AnomalyReport(
            metric=request.metric,
            granularity=Granularity.DAILY,
            start_date=start,
            end_date=end,
            threshold=detector.threshold,
            window_size=detector.window,
            points_analyzed=detector.points_analyzed(len(points)),
            anomalies=detector.detect(points, request.metric),
        )

    async def simulate_discount(self, request: SimulateDiscountRequest) -> DiscountSimulation:
        """Discount what-if against the product's baseline window."""
        start, end = window_bounds(request.time_range.value, self._as_of(request))
        events = await self._read(request, start, end, product_id=request.product_id)
        baseline = build_baseline(
            events,
            request.product_id,
            unit_cost=request.unit_cost,
            cost_ratio=self.cost_ratio,
        )
        return simulate(
            product_id=request.product_id,
            baseline_revenue=baseline.revenue,
            baseline_volume=baseline.volume,
            discount_percent=request.discount_percent,
            expected_volume_increase_percent=request.expected_volume_increase,
            unit_cost=baseline.unit_cost,
            unit_cost_source=baseline.unit_cost_source,
        )

    async def sales_summary(self, request: SalesSummaryRequest) -> SalesSummaryResult:
        """Headline figures, with optional comparison and projection."""
        as_of = self._as_of(request)
        start, end = window_bounds(request.time_range.value, as_of)
        read_start = previous_window(start, end)[0] if request.include_comparisons else start

        events = await self._read(request, read_start, end, artisan_id=request.artisan_id)
        summary = summarize_sales(
            events,
            start,
            end,
            previous_events=events if request.include_comparisons else None,
            cost_ratio=self.cost_ratio,
        )

        projection = None
        if request.include_projections:
            projection = await self._forecast(
                request,
                horizon=PROJECTION_HORIZONS[request.time_range],
                granularity=Granularity.DAILY,
                confidence=None,
                artisan_id=request.artisan_id,
                product_id=None,
            )
        return SalesSummaryResult(**summary.model_dump(), projection=projection)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _rank_products(
        self,
        request: TopProductsRequest | BottomProductsRequest,
        sort_by: SortBy,
        ascending: bool,
    ) -> ProductRanking:
        limit = request.limit or self.settings.ranking_default_limit
        maximum = self.settings.ranking_max_limit
        if limit > maximum:
            raise ValidationError(
                f"limit must be at most {maximum}, got {limit}",
                details={"field": "limit", "value": limit, "max": maximum},
            )
        start, end = window_bounds(request.time_range.value, self._as_of(request))
        prev_start, prev_end = previous_window(start, end)

        events = await self._read(request, prev_start, end, artisan_id=request.artisan_id)
        current = [e for e in events if e.event_date >= start]
        previous = [e for e in events if e.event_date <= prev_end]

        products = rank(
            summarize_products(current, previous, self.cost_ratio),
            sort_by=sort_by,
            limit=limit,
            ascending=ascending,
            min_revenue=request.min_revenue,
            category=request.category,
        )
        return ProductRanking(
            sort_by=sort_by,
            ascending=ascending,
            time_range=request.time_range.value,
            category=request.category,
            products=products,
        )

    async def _forecast(
        self,
        request: ToolRequestBase,
        horizon: int | NamedHorizon,
        granularity: Granularity,
        confidence: float | None,
        artisan_id: str | None,
        product_id: str | None,
    ) -> ForecastResult:
        forecaster = RevenueForecaster(self.settings)
        end = last_complete_day(self._as_of(request), granularity, utc_today())
        start = history_start(end, granularity, forecaster.history_periods(granularity))

        events = await self._read(
            request, start, end, artisan_id=artisan_id, product_id=product_id
        )
        points = aggregate(events, granularity, start, end, self.cost_ratio)
        return forecaster.forecast(
            points, horizon, confidence=confidence, granularity=granularity
        )

    async def _read(
        self,
        request: ToolRequestBase,
        start: date,
        end: date,
        artisan_id: str | None = None,
        product_id: str | None = None,
    ) -> list[SalesEventRecord]:
        timeout = request.timeout_seconds or self.settings.advisor_query_timeout_seconds
        try:
            return await asyncio.wait_for(
                self.reader.query_range(start, end, artisan_id=artisan_id, product_id=product_id),
                timeout=timeout,
            )
        except TimeoutError as e:
            raise ServiceUnavailableError(
                f"Sales data could not be read within {timeout}s",
                details={"timeoutSeconds": timeout},
            ) from e
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to read sales events",
                details={"error": str(e)},
            ) from e

    @staticmethod
    def _as_of(request: ToolRequestBase) -> date:
        return request.as_of or utc_today()

    @staticmethod
    def _resolve_tool(tool: str) -> ToolName:
        try:
            return ToolName(tool)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown tool '{tool}'",
                details={"tool": tool, "available": [t.value for t in ToolName]},
            ) from e


def _field_errors(error: PydanticValidationError) -> list[dict[str, Any]]:
    return [
        {
            "field": ".".join(str(loc) for loc in (err["loc"][1:] or err["loc"])),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in error.errors()
    ]


def _error_envelope(
    tool: str,
    code: str,
    message: str,
    details: dict[str, Any],
) -> ToolResult:
    return ToolResult(
        success=False,
        tool=tool,
        error={"code": code, "message": message, "details": details},
        http_status=ERROR_STATUS.get(code, 500),
    )
