"""Forecasting module for revenue projections.

Provides a linear-trend plus seasonal-naive forecaster with prediction
bands, and the service that applies it to aggregated revenue series.
"""

from finadvisor.features.forecasting.models import (
    BaseForecaster,
    FitResult,
    LinearSeasonalForecaster,
    PredictionBand,
)
from finadvisor.features.forecasting.schemas import ForecastResult, NamedHorizon, Trend
from finadvisor.features.forecasting.service import RevenueForecaster, resolve_horizon

__all__ = [
    "BaseForecaster",
    "FitResult",
    "ForecastResult",
    "LinearSeasonalForecaster",
    "NamedHorizon",
    "PredictionBand",
    "RevenueForecaster",
    "Trend",
    "resolve_horizon",
]
