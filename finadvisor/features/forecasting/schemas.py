"""Pydantic schemas for revenue forecasts.

Forecasts are read models: recomputed from the event store on every request
and never persisted.
"""

from __future__ import annotations

from datetime import date as date_type
from enum import Enum

from pydantic import Field, model_validator

from finadvisor.features.analytics.schemas import Granularity
from finadvisor.shared.schemas import CamelModel


class Trend(str, Enum):
    """Direction of the forecast versus recent history (±5 % band is stable)."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class NamedHorizon(str, Enum):
    """Forecast horizons given as calendar spans."""

    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"


class ForecastResult(CamelModel):
    """Revenue forecast with a prediction band.

    All lists have `horizonPeriods` entries; entry k is the forecast for
    the k-th period after the last observed one.
    """

    horizon_periods: int = Field(..., ge=1, description="Number of forecast periods")
    granularity: Granularity = Field(..., description="Period size")
    period_starts: list[date_type] = Field(..., description="First day of each forecast period")
    predicted_values: list[float] = Field(..., description="Point forecasts, never negative")
    lower_bound: list[float] = Field(..., description="Lower band, never negative")
    upper_bound: list[float] = Field(..., description="Upper band")
    confidence_level: float = Field(..., ge=0.8, le=0.95, description="Band confidence")
    trend: Trend = Field(..., description="up/down/stable versus recent history")
    history_points: int = Field(..., ge=2, description="Observed periods used")
    residual_std_error: float = Field(..., ge=0, description="Residual std error of the trend")

    @model_validator(mode="after")
    def validate_lengths(self) -> ForecastResult:
        """Ensure every series has one entry per forecast period."""
        lengths = {
            len(self.period_starts),
            len(self.predicted_values),
            len(self.lower_bound),
            len(self.upper_bound),
        }
        if lengths != {self.horizon_periods}:
            raise ValueError("Forecast series lengths must equal horizonPeriods")
        return self
