"""Revenue forecasting over aggregated time series.

Orchestrates:
- Horizon resolution (periods or named calendar spans)
- History window sizing per granularity
- Model fitting and banded prediction
- Trend classification against recent history

CRITICAL: Forecasts are pure functions of the supplied history.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import date as date_type
from datetime import timedelta

import numpy as np

from finadvisor.core.config import Settings, get_settings
from finadvisor.core.exceptions import InsufficientHistoryError, ValidationError
from finadvisor.core.logging import get_logger
from finadvisor.features.analytics.aggregation import next_period_start, period_start
from finadvisor.features.analytics.schemas import Granularity, TimeSeriesPoint
from finadvisor.features.forecasting.models import FloatArray, LinearSeasonalForecaster
from finadvisor.features.forecasting.schemas import ForecastResult, NamedHorizon, Trend

logger = get_logger(__name__)

# Seasonal cycle length in periods; yearly series have no seasonality
SEASON_LENGTHS: dict[Granularity, int | None] = {
    Granularity.DAILY: 7,
    Granularity.WEEKLY: 52,
    Granularity.MONTHLY: 12,
    Granularity.QUARTERLY: 4,
    Granularity.YEARLY: None,
}

# Approximate period lengths, used to convert named horizons into periods
PERIOD_DAYS: dict[Granularity, int] = {
    Granularity.DAILY: 1,
    Granularity.WEEKLY: 7,
    Granularity.MONTHLY: 30,
    Granularity.QUARTERLY: 91,
    Granularity.YEARLY: 365,
}

HORIZON_DAYS: dict[NamedHorizon, int] = {
    NamedHorizon.WEEK: 7,
    NamedHorizon.MONTH: 30,
    NamedHorizon.QUARTER: 90,
}

TREND_TOLERANCE = 0.05
MIN_CONFIDENCE = 0.8
MAX_CONFIDENCE = 0.95


def resolve_horizon(
    horizon: int | str | NamedHorizon,
    granularity: Granularity,
    max_horizon: int,
) -> int:
    """Number of forecast periods for a horizon.

    Named horizons (week/month/quarter) cover at least that many days.

    Raises:
        ValidationError: If the horizon is unknown, not positive or too long.
    """
    if isinstance(horizon, int):
        periods = horizon
    else:
        try:
            named = NamedHorizon(horizon)
        except ValueError as e:
            raise ValidationError(
                f"Unknown horizon '{horizon}': use a number of periods or week/month/quarter",
                details={"field": "horizon", "value": horizon},
            ) from e
        periods = math.ceil(HORIZON_DAYS[named] / PERIOD_DAYS[granularity])

    if not 1 <= periods <= max_horizon:
        raise ValidationError(
            f"horizon must be between 1 and {max_horizon} periods, got {periods}",
            details={"field": "horizon", "value": periods, "max": max_horizon},
        )
    return periods


def history_start(as_of: date_type, granularity: Granularity, periods: int) -> date_type:
    """First day of a history of `periods` buckets ending with the bucket of as_of."""
    start = period_start(as_of, granularity)
    for _ in range(periods - 1):
        start = period_start(start - timedelta(days=1), granularity)
    return start


def last_complete_day(as_of: date_type, granularity: Granularity, today: date_type) -> date_type:
    """Last day of the newest period that is fully observed by as_of.

    The current UTC day is still in progress, and a period whose last day
    falls after as_of is partial; both are left out of forecast history.
    """
    end = min(as_of, today - timedelta(days=1))
    bucket_start = period_start(end, granularity)
    if next_period_start(bucket_start, granularity) - timedelta(days=1) > end:
        return bucket_start - timedelta(days=1)
    return end


def classify_trend(history: FloatArray, predicted: FloatArray) -> Trend:
    """Compare the mean forecast with the mean of equally many recent observations."""
    recent = history[-min(len(predicted), len(history)) :]
    recent_mean = float(np.mean(recent))
    predicted_mean = float(np.mean(predicted))

    if recent_mean == 0:
        return Trend.UP if predicted_mean > 0 else Trend.STABLE
    if predicted_mean > recent_mean * (1 + TREND_TOLERANCE):
        return Trend.UP
    if predicted_mean < recent_mean * (1 - TREND_TOLERANCE):
        return Trend.DOWN
    return Trend.STABLE


class RevenueForecaster:
    """Forecasts revenue from a zero-filled time series.

    Configured from settings: trend window, seasonal weight, default
    confidence, history length and maximum horizon.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the forecaster.

        Args:
            settings: Settings override (defaults to the cached settings).
        """
        self.settings = settings or get_settings()

    def history_periods(self, granularity: Granularity) -> int:
        """Number of buckets of history to read for a granularity.

        Covers `forecast_history_days`, the trend window and one seasonal
        cycle, whichever is longest.
        """
        by_days = math.ceil(self.settings.forecast_history_days / PERIOD_DAYS[granularity])
        season = SEASON_LENGTHS[granularity] or 0
        return max(by_days, self.settings.forecast_trend_window, season)

    def forecast(
        self,
        points: Sequence[TimeSeriesPoint],
        horizon: int | str | NamedHorizon,
        confidence: float | None = None,
        granularity: Granularity = Granularity.DAILY,
    ) -> ForecastResult:
        """Forecast revenue for the periods after the last point.

        Args:
            points: History in chronological order, one point per period.
            horizon: Number of periods, or week/month/quarter.
            confidence: Band confidence in [0.8, 0.95]; default from settings.
            granularity: Period size of the history.

        Returns:
            Forecast with prediction band.

        Raises:
            InsufficientHistoryError: If fewer than 2 points are supplied.
            ValidationError: If horizon or confidence is out of range.
        """
        level = confidence if confidence is not None else self.settings.forecast_default_confidence
        if not MIN_CONFIDENCE <= level <= MAX_CONFIDENCE:
            raise ValidationError(
                f"confidence must be between {MIN_CONFIDENCE} and {MAX_CONFIDENCE}, got {level}",
                details={"field": "confidence", "value": level},
            )
        periods = resolve_horizon(horizon, granularity, self.settings.forecast_max_horizon)

        if len(points) < 2:
            raise InsufficientHistoryError(
                f"Forecasting needs at least 2 periods of history, got {len(points)}",
                details={"history_points": len(points), "required": 2},
            )

        history = np.array([float(p.revenue) for p in points], dtype=np.float64)
        model = LinearSeasonalForecaster(
            trend_window=self.settings.forecast_trend_window,
            seasonal_weight=self.settings.forecast_seasonal_weight,
            season_length=SEASON_LENGTHS[granularity],
        ).fit(history)
        band = model.predict_interval(periods, level)

        period_starts: list[date_type] = []
        current = points[-1].bucket_start
        for _ in range(periods):
            current = next_period_start(period_start(current, granularity), granularity)
            period_starts.append(current)

        trend = classify_trend(history, band.predicted)

        logger.info(
            "forecasting.revenue_forecast_computed",
            granularity=granularity.value,
            horizon_periods=periods,
            history_points=len(points),
            confidence=level,
            trend=trend.value,
            slope=model.fit_result.slope,
        )

        return ForecastResult(
            horizon_periods=periods,
            granularity=granularity,
            period_starts=period_starts,
            predicted_values=[round(float(v), 2) for v in band.predicted],
            lower_bound=[round(float(v), 2) for v in band.lower],
            upper_bound=[round(float(v), 2) for v in band.upper],
            confidence_level=level,
            trend=trend,
            history_points=len(points),
            residual_std_error=round(model.fit_result.residual_std_error, 4),
        )
