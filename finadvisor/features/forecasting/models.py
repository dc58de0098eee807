"""Forecasting models with a scikit-learn-style interface.

All forecasters implement a common interface:
- fit(y) -> self
- predict(horizon) -> np.ndarray
- predict_interval(horizon, confidence) -> PredictionBand
- get_params() -> dict
- set_params(**params) -> self

CRITICAL: All implementations are deterministic; the same history always
yields the same forecast.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from statistics import NormalDist
from typing import Any

import numpy as np

FloatArray = np.ndarray[Any, np.dtype[np.floating[Any]]]


@dataclass
class FitResult:
    """Result of model fitting.

    Attributes:
        n_observations: Number of observations in the history.
        trend_points: Number of trailing observations the trend was fitted on.
        slope: Trend slope per period.
        intercept: Trend value at the first point of the trend window.
        residual_std_error: Residual standard error of the trend fit.
    """

    n_observations: int
    trend_points: int
    slope: float
    intercept: float
    residual_std_error: float


@dataclass
class PredictionBand:
    """Point forecasts with a symmetric prediction band, clipped at zero."""

    predicted: FloatArray
    lower: FloatArray
    upper: FloatArray
    confidence: float


def z_value(confidence: float) -> float:
    """Two-sided standard normal quantile for a confidence level."""
    return NormalDist().inv_cdf(0.5 + confidence / 2)


class BaseForecaster(ABC):
    """Abstract base class for forecasting models.

    Interface follows scikit-learn conventions:
    - fit(y) -> self
    - predict(horizon) -> np.ndarray
    - get_params() -> dict
    - set_params(**params) -> self
    """

    def __init__(self) -> None:
        """Initialize the forecaster."""
        self._is_fitted = False
        self._fit_result: FitResult | None = None

    @abstractmethod
    def fit(self, y: FloatArray) -> BaseForecaster:
        """Fit the model on historical data.

        Args:
            y: Target values (1D array of shape [n_samples]).

        Returns:
            self (for method chaining).

        Raises:
            ValueError: If y has insufficient observations.
        """

    @abstractmethod
    def predict(self, horizon: int) -> FloatArray:
        """Generate point forecasts for the next `horizon` periods.

        Raises:
            RuntimeError: If model has not been fitted.
        """

    @abstractmethod
    def predict_interval(self, horizon: int, confidence: float) -> PredictionBand:
        """Generate point forecasts with a prediction band.

        Raises:
            RuntimeError: If model has not been fitted.
        """

    @abstractmethod
    def get_params(self) -> dict[str, Any]:
        """Get model parameters (scikit-learn convention)."""

    def set_params(self, **params: Any) -> BaseForecaster:  # noqa: ANN401
        """Set model parameters (scikit-learn convention).

        Args:
            **params: Parameter names and values to set.

        Returns:
            self (for method chaining).
        """
        for key, value in params.items():
            setattr(self, key, value)
        return self

    @property
    def is_fitted(self) -> bool:
        """Check if the model has been fitted."""
        return self._is_fitted

    @property
    def fit_result(self) -> FitResult:
        """Details of the last fit.

        Raises:
            RuntimeError: If model has not been fitted.
        """
        if self._fit_result is None:
            raise RuntimeError("Model must be fitted before reading fit results")
        return self._fit_result


class LinearSeasonalForecaster(BaseForecaster):
    """Least-squares trend blended with a seasonal-naive component.

    Formula, for step h after the last observation t0:

        trend[h]    = intercept + slope * (t0 + h)
        seasonal[h] = y[n - m + (h - 1) % m]          (same period last cycle)
        y_hat[h]    = (1 - w) * trend[h] + w * seasonal[h]

    The trend is fitted on the most recent `trend_window` observations. The
    seasonal component is used only when a full cycle of history exists.

    The band half-width is the ordinary-least-squares prediction interval of
    the trend fit:

        z * s * sqrt(1 + 1/N + (t - t_mean)^2 / Sxx)

    so it widens with the horizon and with the confidence level.

    Attributes:
        trend_window: Number of trailing observations for the trend fit.
        seasonal_weight: Weight w of the seasonal component in [0, 1].
        season_length: Cycle length m in periods, or None for no seasonality.
    """

    def __init__(
        self,
        trend_window: int = 28,
        seasonal_weight: float = 0.3,
        season_length: int | None = 7,
    ) -> None:
        """Initialize the forecaster.

        Args:
            trend_window: Number of trailing observations for the trend fit.
            seasonal_weight: Weight of the seasonal component.
            season_length: Cycle length in periods (None disables seasonality).
        """
        super().__init__()
        self.trend_window = trend_window
        self.seasonal_weight = seasonal_weight
        self.season_length = season_length
        self._history: FloatArray = np.empty(0, dtype=np.float64)
        self._x_mean = 0.0
        self._sxx = 0.0

    def fit(self, y: FloatArray) -> LinearSeasonalForecaster:
        """Fit the trend line and keep the history for the seasonal lookup.

        Args:
            y: Target values (1D array).

        Returns:
            self (for method chaining).

        Raises:
            ValueError: If y has fewer than 2 observations.
        """
        if len(y) < 2:
            raise ValueError("Need at least 2 observations")

        history = np.asarray(y, dtype=np.float64)
        window = history[-self.trend_window :]
        n = len(window)
        x = np.arange(n, dtype=np.float64)

        slope, intercept = np.polyfit(x, window, 1)
        residuals = window - (intercept + slope * x)
        sse = float(np.sum(residuals**2))
        residual_std_error = float(np.sqrt(sse / (n - 2))) if n > 2 else 0.0

        self._history = history
        self._x_mean = float(x.mean())
        self._sxx = float(np.sum((x - self._x_mean) ** 2))
        self._fit_result = FitResult(
            n_observations=len(history),
            trend_points=n,
            slope=float(slope),
            intercept=float(intercept),
            residual_std_error=residual_std_error,
        )
        self._is_fitted = True
        return self

    def predict(self, horizon: int) -> FloatArray:
        """Predict the next `horizon` periods, clipped at zero.

        Raises:
            RuntimeError: If model has not been fitted.
        """
        fit = self.fit_result
        t = self._future_positions(horizon)
        trend = fit.intercept + fit.slope * t

        seasonal = self._seasonal(horizon)
        if seasonal is None:
            blended = trend
        else:
            blended = (1 - self.seasonal_weight) * trend + self.seasonal_weight * seasonal
        return np.clip(blended, 0.0, None)

    def predict_interval(self, horizon: int, confidence: float) -> PredictionBand:
        """Predict with a prediction band at the given confidence.

        Raises:
            RuntimeError: If model has not been fitted.
        """
        predicted = self.predict(horizon)
        fit = self.fit_result
        t = self._future_positions(horizon)

        leverage = 1 + 1 / fit.trend_points + (t - self._x_mean) ** 2 / self._sxx
        half_width = z_value(confidence) * fit.residual_std_error * np.sqrt(leverage)

        return PredictionBand(
            predicted=predicted,
            lower=np.clip(predicted - half_width, 0.0, None),
            upper=predicted + half_width,
            confidence=confidence,
        )

    def get_params(self) -> dict[str, Any]:
        """Get model parameters.

        Returns:
            Dictionary with trend_window, seasonal_weight and season_length.
        """
        return {
            "trend_window": self.trend_window,
            "seasonal_weight": self.seasonal_weight,
            "season_length": self.season_length,
        }

    def _future_positions(self, horizon: int) -> FloatArray:
        # Positions on the trend window's x axis; the last observation is at n - 1
        last = self.fit_result.trend_points - 1
        return np.arange(last + 1, last + 1 + horizon, dtype=np.float64)

    def _seasonal(self, horizon: int) -> FloatArray | None:
        m = self.season_length
        if m is None or self.seasonal_weight == 0 or len(self._history) < m:
            return None
        last_cycle = self._history[-m:]
        return np.array([last_cycle[h % m] for h in range(horizon)], dtype=np.float64)
