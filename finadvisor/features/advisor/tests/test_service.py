"""Tests for the finance advisor facade."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from finadvisor.core.config import Settings
from finadvisor.features.advisor.schemas import ToolName
from finadvisor.features.advisor.service import FinanceAdvisorService


# =============================================================================
# Envelope
# =============================================================================


class TestEnvelope:
    """Tests for validation and error envelopes."""

    async def test_unknown_tool_is_configuration_error(self, advisor, reader):
        """Unknown tools are rejected without reading data."""
        result = await advisor.execute("delete_everything", {})

        assert result.success is False
        assert result.result is None
        assert result.error.code == "CONFIGURATION_ERROR"
        assert result.http_status == 400
        assert "fetch_timeseries" in result.error.details["available"]
        assert reader.calls == []

    async def test_missing_required_param_is_validation_error(self, advisor, reader):
        """A missing timeRange returns a validation envelope naming the field."""
        result = await advisor.execute("fetch_timeseries", {})

        assert result.success is False
        assert result.error.code == "VALIDATION_ERROR"
        assert result.http_status == 400
        fields = [err["field"] for err in result.error.details["errors"]]
        assert "timeRange" in fields
        assert reader.calls == []

    async def test_unexpected_param_is_validation_error(self, advisor):
        """Unknown parameters are not silently ignored."""
        result = await advisor.execute("fetch_timeseries", {"timeRange": "daily", "foo": 1})

        assert result.error.code == "VALIDATION_ERROR"

    async def test_inverted_dates_are_validation_error(self, advisor):
        """startDate after endDate is rejected."""
        result = await advisor.execute(
            "fetch_timeseries",
            {"timeRange": "daily", "startDate": "2024-03-05", "endDate": "2024-03-01"},
        )

        assert result.error.code == "VALIDATION_ERROR"

    async def test_timeout_is_service_unavailable(self, slow_advisor):
        """A read that exceeds the time budget returns SERVICE_UNAVAILABLE."""
        result = await slow_advisor.execute(
            "sales_summary", {"timeRange": "week", "timeoutSeconds": 0.05}
        )

        assert result.success is False
        assert result.error.code == "SERVICE_UNAVAILABLE"
        assert result.http_status == 503
        assert result.error.details["timeoutSeconds"] == 0.05

    async def test_unexpected_failure_is_internal_error(self, broken_advisor):
        """Unexpected exceptions become an INTERNAL_ERROR envelope."""
        result = await broken_advisor.execute("sales_summary", {"timeRange": "week"})

        assert result.error.code == "INTERNAL_ERROR"
        assert result.error.details == {"errorType": "RuntimeError"}
        assert result.http_status == 500

    async def test_http_status_is_not_serialized(self, advisor):
        """The envelope on the wire is {success, tool, result|error, durationMs}."""
        result = await advisor.execute("delete_everything", {})

        payload = result.model_dump(by_alias=True)
        assert "httpStatus" not in payload
        assert set(payload) == {"success", "tool", "result", "error", "durationMs"}

    async def test_snake_case_params_are_accepted(self, advisor, as_of):
        """Parameters may use snake_case as well as camelCase."""
        result = await advisor.execute(
            "fetch_timeseries",
            {"time_range": "daily", "as_of": as_of.isoformat()},
        )

        assert result.success is True


# =============================================================================
# Tools
# =============================================================================


class TestFetchTimeseries:
    """Tests for the fetch_timeseries tool."""

    async def test_explicit_range_is_zero_filled(self, advisor, reader, add_event):
        """Days without sales appear with zero revenue."""
        add_event(date(2024, 3, 1), "o-1")
        add_event(date(2024, 3, 3), "o-2", quantity=2)

        result = await advisor.execute(
            "fetch_timeseries",
            {"timeRange": "daily", "startDate": "2024-03-01", "endDate": "2024-03-03"},
        )

        assert result.success is True
        points = result.result["points"]
        assert [p["bucketStart"] for p in points] == ["2024-03-01", "2024-03-02", "2024-03-03"]
        assert [Decimal(p["revenue"]) for p in points] == [
            Decimal("100"),
            Decimal("0"),
            Decimal("200"),
        ]
        assert [p["orderCount"] for p in points] == [1, 0, 1]

    async def test_default_range_covers_twelve_weeks(self, advisor, reader, as_of):
        """Weekly series default to 12 ISO weeks ending with the week of asOf."""
        result = await advisor.execute(
            "fetch_timeseries", {"timeRange": "weekly", "asOf": as_of.isoformat()}
        )

        assert len(result.result["points"]) == 12
        assert reader.calls[0][0] == date(2024, 1, 8)
        assert reader.calls[0][1] == as_of

    async def test_filters_are_passed_to_reader(self, advisor, reader, as_of):
        """Artisan and product filters reach the store query."""
        await advisor.execute(
            "fetch_timeseries",
            {
                "timeRange": "daily",
                "asOf": as_of.isoformat(),
                "artisanId": "artisan-9",
                "productId": "product-9",
            },
        )

        assert reader.calls[0][2:] == ("artisan-9", "product-9")


class TestRankings:
    """Tests for the top_products and bottom_products tools."""

    @pytest.fixture
    def ranked_reader(self, reader, add_event):
        add_event(date(2024, 3, 20), "a-1", product_id="A", quantity=3)
        add_event(date(2024, 3, 21), "b-1", product_id="B")
        add_event(
            date(2024, 3, 22),
            "c-1",
            product_id="C",
            quantity=2,
            product_category="textiles",
        )
        # Previous window
        add_event(date(2024, 2, 20), "a-0", product_id="A", quantity=3)
        return reader

    async def test_top_products_by_revenue(self, advisor, ranked_reader, as_of):
        """Highest revenue first, limited."""
        result = await advisor.execute(
            "top_products",
            {"timeRange": "month", "sortBy": "revenue", "limit": 2, "asOf": as_of.isoformat()},
        )

        products = result.result["products"]
        assert [(p["productId"], p["rank"]) for p in products] == [("A", 1), ("C", 2)]
        assert products[0]["growth"] == 0.0

    async def test_top_products_by_growth_breaks_ties_by_id(
        self, advisor, ranked_reader, as_of
    ):
        """New products share 100 % growth and are ordered by id."""
        result = await advisor.execute(
            "top_products",
            {"timeRange": "month", "sortBy": "growth", "asOf": as_of.isoformat()},
        )

        ids = [p["productId"] for p in result.result["products"]]
        assert ids == ["B", "C", "A"]

    async def test_bottom_products_ascending_revenue(self, advisor, ranked_reader, as_of):
        """Lowest revenue first."""
        result = await advisor.execute(
            "bottom_products", {"timeRange": "month", "asOf": as_of.isoformat()}
        )

        assert result.result["ascending"] is True
        assert [p["productId"] for p in result.result["products"]] == ["B", "C", "A"]

    async def test_category_filter(self, advisor, ranked_reader, as_of):
        """Only products of the category are ranked."""
        result = await advisor.execute(
            "top_products",
            {
                "timeRange": "month",
                "sortBy": "units",
                "category": "textiles",
                "asOf": as_of.isoformat(),
            },
        )

        assert [p["productId"] for p in result.result["products"]] == ["C"]

    async def test_rankings_read_current_and_previous_window(
        self, advisor, ranked_reader, as_of
    ):
        """One read covers both the window and the one before it."""
        await advisor.execute(
            "bottom_products", {"timeRange": "week", "asOf": as_of.isoformat()}
        )

        assert ranked_reader.calls[0][:2] == (date(2024, 3, 18), as_of)

    async def test_limit_above_configured_maximum(self, reader, ranked_reader, as_of):
        """The ranking limit is bounded by settings, not by the request schema."""
        advisor = FinanceAdvisorService(reader, Settings(ranking_max_limit=2))

        result = await advisor.execute(
            "top_products", {"timeRange": "month", "limit": 3, "asOf": as_of.isoformat()}
        )

        assert result.error.code == "VALIDATION_ERROR"
        assert result.error.details == {"field": "limit", "value": 3, "max": 2}
        assert reader.calls == []

    async def test_limit_beyond_hundred_with_raised_maximum(
        self, reader, ranked_reader, as_of
    ):
        """A deployment may allow longer rankings than the default maximum."""
        advisor = FinanceAdvisorService(reader, Settings(ranking_max_limit=500))

        result = await advisor.execute(
            "top_products", {"timeRange": "month", "limit": 150, "asOf": as_of.isoformat()}
        )

        assert result.error is None
        assert len(result.result["products"]) == 3


class TestForecastRevenue:
    """Tests for the forecast_revenue tool."""

    async def test_flat_history_forecasts_flat(
        self, advisor, reader, add_event, daily_days, as_of
    ):
        """A constant daily revenue forecasts the same revenue, trend stable."""
        for i, day in enumerate(daily_days):
            add_event(day, f"o-{i}")

        result = await advisor.execute(
            "forecast_revenue", {"horizon": "week", "asOf": as_of.isoformat()}
        )

        forecast = result.result
        assert forecast["horizonPeriods"] == 7
        assert forecast["periodStarts"][0] == (as_of + timedelta(days=1)).isoformat()
        assert forecast["predictedValues"] == pytest.approx([100.0] * 7, abs=0.01)
        assert forecast["trend"] == "stable"
        assert forecast["confidenceLevel"] == 0.95
        assert forecast["historyPoints"] == 90

    async def test_partial_month_is_left_out_of_history(self, advisor, reader, add_event):
        """A monthly forecast mid-month ends its history at the previous month."""
        for month in range(1, 13):
            add_event(date(2023, month, 10), f"o-2023-{month}")
        add_event(date(2024, 1, 10), "o-2024-1")
        add_event(date(2024, 2, 10), "o-2024-2")
        add_event(date(2024, 3, 10), "o-2024-3")

        result = await advisor.execute(
            "forecast_revenue",
            {"horizon": 3, "granularity": "monthly", "asOf": "2024-03-15"},
        )

        assert result.error is None
        assert reader.calls[0][1] == date(2024, 2, 29)
        assert result.result["periodStarts"][0] == "2024-03-01"

    async def test_confidence_out_of_range(self, advisor):
        """Confidence outside [0.8, 0.95] is a validation error."""
        result = await advisor.execute("forecast_revenue", {"horizon": 7, "confidence": 0.99})

        assert result.error.code == "VALIDATION_ERROR"

    async def test_unknown_named_horizon(self, advisor):
        """Horizons are a number of periods or week/month/quarter."""
        result = await advisor.execute("forecast_revenue", {"horizon": "fortnight"})

        assert result.error.code == "VALIDATION_ERROR"

    async def test_horizon_beyond_maximum(self, advisor, as_of):
        """Horizons longer than the configured maximum are rejected."""
        result = await advisor.execute(
            "forecast_revenue", {"horizon": 1000, "asOf": as_of.isoformat()}
        )

        assert result.error.code == "VALIDATION_ERROR"
        assert result.error.details["max"] == 365


class TestDetectAnomalies:
    """Tests for the detect_anomalies tool."""

    async def test_injected_spike_is_found(
        self, advisor, reader, add_event, daily_days, as_of
    ):
        """A single spike in a stable cycle is the only anomaly."""
        spike_day = date(2024, 3, 20)
        for i, day in enumerate(daily_days):
            price = 500 if day == spike_day else 100 + (0, 1, -1)[i % 3]
            add_event(day, f"o-{i}", unit_price=price)

        result = await advisor.execute(
            "detect_anomalies",
            {"metric": "revenue", "timeRange": "month", "asOf": as_of.isoformat()},
        )

        report = result.result
        assert report["startDate"] == "2024-03-02"
        assert report["pointsAnalyzed"] == 30
        assert [a["timestamp"] for a in report["anomalies"]] == ["2024-03-20"]
        assert report["anomalies"][0]["severity"] == "high"
        assert report["anomalies"][0]["observedValue"] == 500.0

    async def test_series_starts_one_window_early(self, advisor, reader, as_of):
        """The read starts window-size days before the analysis window."""
        await advisor.execute(
            "detect_anomalies",
            {"metric": "orders", "timeRange": "week", "asOf": as_of.isoformat()},
        )

        assert reader.calls[0][0] == date(2024, 3, 18)

    async def test_threshold_must_be_positive(self, advisor):
        """A non-positive threshold is a validation error."""
        result = await advisor.execute(
            "detect_anomalies", {"metric": "revenue", "timeRange": "week", "threshold": 0}
        )

        assert result.error.code == "VALIDATION_ERROR"


class TestSimulateDiscount:
    """Tests for the simulate_discount tool."""

    async def test_recommended_discount(self, advisor, reader, add_event, as_of):
        """10 % off with 20 % more units grows revenue with a small margin dip."""
        add_event(date(2024, 3, 15), "o-1", quantity=10)

        result = await advisor.execute(
            "simulate_discount",
            {
                "productId": "product-1",
                "discountPercent": 10,
                "expectedVolumeIncrease": 20,
                "unitCost": 50,
                "asOf": as_of.isoformat(),
            },
        )

        simulation = result.result
        assert Decimal(simulation["projectedRevenue"]) == Decimal("1080")
        assert simulation["revenueChangePercent"] == 8.0
        assert simulation["marginChangePercent"] == -4.0
        assert simulation["unitCostSource"] == "caller"
        assert simulation["recommendation"] == "recommended"

    async def test_default_cost_ratio(self, advisor, reader, add_event, as_of):
        """Without a unit cost the configured ratio of the unit price is used."""
        add_event(date(2024, 3, 15), "o-1", quantity=10)

        result = await advisor.execute(
            "simulate_discount",
            {"productId": "product-1", "discountPercent": 0, "asOf": as_of.isoformat()},
        )

        simulation = result.result
        assert simulation["unitCostSource"] == "default_ratio"
        assert Decimal(simulation["unitCost"]) == Decimal("80")
        assert Decimal(simulation["projectedRevenue"]) == Decimal(simulation["baselineRevenue"])

    async def test_no_sales_is_insufficient_history(self, advisor, as_of):
        """A product without sales in the window cannot be simulated."""
        result = await advisor.execute(
            "simulate_discount",
            {"productId": "ghost", "discountPercent": 10, "asOf": as_of.isoformat()},
        )

        assert result.error.code == "INSUFFICIENT_HISTORY"
        assert result.http_status == 422

    async def test_discount_of_hundred_is_rejected(self, advisor):
        """discountPercent must be below 100."""
        result = await advisor.execute(
            "simulate_discount", {"productId": "product-1", "discountPercent": 100}
        )

        assert result.error.code == "VALIDATION_ERROR"


class TestSalesSummary:
    """Tests for the sales_summary tool."""

    @pytest.fixture
    def summary_reader(self, reader, add_event):
        for i, day in enumerate((date(2024, 3, 10), date(2024, 3, 11), date(2024, 3, 12))):
            add_event(day, f"cur-{i}")
        add_event(date(2024, 2, 15), "prev-1", unit_price="150.00")
        return reader

    async def test_summary_with_comparison(self, advisor, summary_reader, as_of):
        """Totals of the window and growth versus the previous one."""
        result = await advisor.execute(
            "sales_summary", {"timeRange": "month", "asOf": as_of.isoformat()}
        )

        summary = result.result
        assert summary["startDate"] == "2024-03-02"
        assert Decimal(summary["totalRevenue"]) == Decimal("300")
        assert summary["totalOrders"] == 3
        assert summary["topProduct"] == "product-1"
        comparison = summary["previousPeriodComparison"]
        assert Decimal(comparison["previousRevenue"]) == Decimal("150")
        assert comparison["revenueGrowth"] == 100.0
        assert comparison["orderGrowth"] == 200.0
        assert summary["projection"] is None

    async def test_summary_without_comparison(self, advisor, summary_reader, as_of):
        """includeComparisons=false reads only the window."""
        result = await advisor.execute(
            "sales_summary",
            {"timeRange": "month", "includeComparisons": False, "asOf": as_of.isoformat()},
        )

        assert result.result["previousPeriodComparison"] is None
        assert summary_reader.calls[0][0] == date(2024, 3, 2)

    async def test_summary_with_projection(self, advisor, summary_reader, as_of):
        """includeProjections attaches a forecast for the next window."""
        result = await advisor.execute(
            "sales_summary",
            {"timeRange": "month", "includeProjections": True, "asOf": as_of.isoformat()},
        )

        projection = result.result["projection"]
        assert projection["horizonPeriods"] == 30
        assert projection["granularity"] == "daily"
        assert all(value >= 0 for value in projection["lowerBound"])


# =============================================================================
# Tool definitions
# =============================================================================


class TestToolDefinitions:
    """Tests for the tool JSON schemas."""

    def test_every_tool_is_described(self, advisor):
        """One definition per tool, with a description."""
        definitions = advisor.tool_definitions()

        assert {d.name for d in definitions} == set(ToolName)
        assert all(d.description for d in definitions)

    def test_parameters_use_wire_names(self, advisor):
        """Schemas list camelCase parameters and hide the discriminator."""
        definitions = {d.name: d for d in advisor.tool_definitions()}
        schema = definitions[ToolName.TOP_PRODUCTS].parameters

        assert "timeRange" in schema["properties"]
        assert "sortBy" in schema["properties"]
        assert "tool" not in schema["properties"]
        assert set(schema["required"]) == {"timeRange", "sortBy"}

    def test_definitions_do_not_read_data(self, advisor, reader):
        """Listing tools never touches the store."""
        advisor.tool_definitions()

        assert reader.calls == []


def test_settings_default_timeout():
    """The advisor's default read budget comes from settings."""
    assert Settings().advisor_query_timeout_seconds == 10.0
