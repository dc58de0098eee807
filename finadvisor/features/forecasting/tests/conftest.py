"""Test fixtures for forecasting module."""

from collections.abc import Callable
from datetime import date, timedelta
from decimal import Decimal

import numpy as np
import pytest

from finadvisor.features.analytics.schemas import TimeSeriesPoint


@pytest.fixture
def sample_time_series() -> np.ndarray:
    """Create sample time series data for testing.

    Returns 60 days of sequential values (1, 2, 3, ...) for easy verification.
    """
    return np.array(range(1, 61), dtype=np.float64)


@pytest.fixture
def sample_seasonal_series() -> np.ndarray:
    """Create sample time series with weekly pattern.

    Returns 28 days (4 weeks) of data with a clear weekly pattern:
    Week pattern: [10, 20, 30, 40, 50, 60, 70] repeated.
    """
    weekly_pattern = np.array([10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0])
    return np.tile(weekly_pattern, 4)


@pytest.fixture
def sample_noisy_series() -> np.ndarray:
    """Upward trend with reproducible Gaussian noise (90 days)."""
    rng = np.random.default_rng(42)
    return 200.0 + 2.0 * np.arange(90) + rng.normal(0.0, 15.0, 90)


@pytest.fixture
def make_points() -> Callable[..., list[TimeSeriesPoint]]:
    """Factory turning revenue values into consecutive daily points."""

    def _make(values: list[float], start: date = date(2024, 1, 1)) -> list[TimeSeriesPoint]:
        return [
            TimeSeriesPoint(
                bucket_start=start + timedelta(days=i),
                bucket_end=start + timedelta(days=i),
                revenue=Decimal(str(value)),
                units=0,
                order_count=0,
                margin=Decimal("0"),
                average_order_value=Decimal("0"),
            )
            for i, value in enumerate(values)
        ]

    return _make
