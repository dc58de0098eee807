"""Tests for forecasting models."""

import numpy as np
import pytest

from finadvisor.features.forecasting.models import LinearSeasonalForecaster, z_value


class TestLinearSeasonalForecaster:
    """Tests for LinearSeasonalForecaster."""

    def test_pure_trend_extends_line(self, sample_time_series):
        """Test that a perfect line is extended with zero band width."""
        model = LinearSeasonalForecaster(trend_window=28, seasonal_weight=0.0)
        model.fit(sample_time_series)

        band = model.predict_interval(horizon=3, confidence=0.95)

        np.testing.assert_allclose(band.predicted, [61.0, 62.0, 63.0])
        np.testing.assert_allclose(band.lower, band.predicted)
        np.testing.assert_allclose(band.upper, band.predicted)
        assert model.fit_result.slope == pytest.approx(1.0)
        assert model.fit_result.trend_points == 28

    def test_seasonal_blend(self, sample_time_series):
        """Test the blend of trend and same-period-last-cycle value."""
        model = LinearSeasonalForecaster(trend_window=28, seasonal_weight=0.3, season_length=7)
        model.fit(sample_time_series)

        forecasts = model.predict(horizon=1)

        # 0.7 * 61 (trend) + 0.3 * 54 (same weekday last week)
        assert forecasts[0] == pytest.approx(58.9)

    def test_full_seasonal_weight_repeats_last_cycle(self, sample_seasonal_series):
        """Test that weight 1 reproduces the last cycle, wrapping around."""
        model = LinearSeasonalForecaster(seasonal_weight=1.0, season_length=7)
        model.fit(sample_seasonal_series)

        forecasts = model.predict(horizon=10)

        expected = [10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0, 10.0, 20.0, 30.0]
        np.testing.assert_allclose(forecasts, expected)

    def test_short_history_skips_seasonality(self):
        """Test that a history shorter than one cycle uses the trend only."""
        model = LinearSeasonalForecaster(seasonal_weight=0.5, season_length=7)
        model.fit(np.array([10.0, 20.0, 30.0]))

        np.testing.assert_allclose(model.predict(horizon=2), [40.0, 50.0])

    def test_all_zero_history(self):
        """Test that an all-zero history forecasts zeros with a zero-width band."""
        model = LinearSeasonalForecaster()
        model.fit(np.zeros(30))

        band = model.predict_interval(horizon=14, confidence=0.9)

        assert np.all(band.predicted == 0.0)
        assert np.all(band.lower == 0.0)
        assert np.all(band.upper == 0.0)

    def test_forecasts_are_clipped_at_zero(self):
        """Test that a falling trend never forecasts negative values."""
        model = LinearSeasonalForecaster(seasonal_weight=0.0)
        model.fit(np.linspace(50.0, 5.0, 10))

        band = model.predict_interval(horizon=10, confidence=0.95)

        assert np.all(band.predicted >= 0.0)
        assert np.all(band.lower >= 0.0)
        assert band.predicted[-1] == 0.0

    def test_band_widens_with_horizon(self, sample_noisy_series):
        """Test that the band half-width grows monotonically with the horizon."""
        model = LinearSeasonalForecaster()
        model.fit(sample_noisy_series)

        band = model.predict_interval(horizon=30, confidence=0.95)
        half_width = band.upper - band.predicted

        assert np.all(np.diff(half_width) > 0)
        assert model.fit_result.residual_std_error > 0

    def test_band_widens_with_confidence(self, sample_noisy_series):
        """Test that higher confidence gives a wider band."""
        model = LinearSeasonalForecaster()
        model.fit(sample_noisy_series)

        narrow = model.predict_interval(horizon=7, confidence=0.8)
        wide = model.predict_interval(horizon=7, confidence=0.95)

        assert np.all(wide.upper - wide.predicted > narrow.upper - narrow.predicted)
        np.testing.assert_allclose(wide.predicted, narrow.predicted)

    def test_determinism(self, sample_noisy_series):
        """Test that the same history gives the same forecast."""
        first = LinearSeasonalForecaster().fit(sample_noisy_series).predict(horizon=10)
        second = LinearSeasonalForecaster().fit(sample_noisy_series).predict(horizon=10)

        np.testing.assert_array_equal(first, second)

    def test_fit_single_point_raises(self):
        """Test that fitting on fewer than 2 observations raises ValueError."""
        model = LinearSeasonalForecaster()

        with pytest.raises(ValueError, match="at least 2"):
            model.fit(np.array([5.0]))

    def test_predict_before_fit_raises(self):
        """Test that predict before fit raises RuntimeError."""
        model = LinearSeasonalForecaster()

        assert not model.is_fitted
        with pytest.raises(RuntimeError, match="must be fitted"):
            model.predict(horizon=5)

    def test_get_and_set_params(self):
        """Test scikit-learn style parameter access."""
        model = LinearSeasonalForecaster(trend_window=14)

        model.set_params(seasonal_weight=0.5, season_length=None)

        assert model.get_params() == {
            "trend_window": 14,
            "seasonal_weight": 0.5,
            "season_length": None,
        }


def test_z_value():
    """Test the two-sided normal quantile."""
    assert z_value(0.95) == pytest.approx(1.959964, abs=1e-6)
    assert z_value(0.8) == pytest.approx(1.281552, abs=1e-6)
