"""Trailing-window z-score anomaly detection over time series.

For point i, the window is the `window` points before it (the point itself
is excluded). A point is anomalous when

    |x[i] - mean(window)| / std(window) > threshold

with the population standard deviation. Points before the first full window
are never flagged. A window with zero variance flags any point that deviates
from it at all, with no z-score and high severity.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from finadvisor.core.exceptions import ValidationError
from finadvisor.core.logging import get_logger
from finadvisor.features.analytics.schemas import Metric, TimeSeriesPoint
from finadvisor.features.anomalies.schemas import AnomalyRecord, Severity

logger = get_logger(__name__)

FloatArray = np.ndarray[Any, np.dtype[np.float64]]

HIGH_SEVERITY_Z = 3.0
MEDIUM_SEVERITY_Z = 2.5


def classify_severity(z_score: float | None) -> Severity:
    """Map a z-score to a severity; a missing z-score (zero variance) is high."""
    if z_score is None or z_score > HIGH_SEVERITY_Z:
        return Severity.HIGH
    if z_score > MEDIUM_SEVERITY_Z:
        return Severity.MEDIUM
    return Severity.LOW


def rolling_stats(values: FloatArray, window: int) -> tuple[FloatArray, FloatArray]:
    """Mean and population std of the `window` values preceding each point.

    Returns arrays aligned with values[window:].
    """
    if len(values) <= window:
        empty = np.empty(0, dtype=np.float64)
        return empty, empty
    windows = sliding_window_view(values, window)[:-1]
    return windows.mean(axis=1), windows.std(axis=1)


class AnomalyDetector:
    """Flags buckets whose metric deviates from the trailing window.

    Args:
        threshold: z-score threshold (> 0).
        window: Trailing window length (>= 2).
        inclusive: Flag z == threshold as well (>= instead of >).
    """

    def __init__(self, threshold: float = 2.0, window: int = 7, inclusive: bool = False) -> None:
        if threshold <= 0:
            raise ValidationError(
                f"threshold must be positive, got {threshold}",
                details={"field": "threshold", "value": threshold},
            )
        if window < 2:
            raise ValidationError(
                f"window must be at least 2, got {window}",
                details={"field": "window", "value": window},
            )
        self.threshold = threshold
        self.window = window
        self.inclusive = inclusive

    def detect(self, points: Sequence[TimeSeriesPoint], metric: Metric) -> list[AnomalyRecord]:
        """Detect anomalies in a time series.

        Args:
            points: Time series in chronological order.
            metric: Metric to analyse.

        Returns:
            Anomalies in chronological order (empty when the series is not
            longer than the window).
        """
        values = np.array([p.metric_value(metric) for p in points], dtype=np.float64)
        means, stds = rolling_stats(values, self.window)

        anomalies: list[AnomalyRecord] = []
        for offset, (mean, std) in enumerate(zip(means, stds, strict=True)):
            index = self.window + offset
            observed = float(values[index])
            deviation = abs(observed - float(mean))

            if std == 0.0:
                if deviation == 0.0:
                    continue
                z_score = None
            else:
                z_score = deviation / float(std)
                exceeds = z_score >= self.threshold if self.inclusive else z_score > self.threshold
                if not exceeds:
                    continue

            anomalies.append(
                AnomalyRecord(
                    metric=metric,
                    timestamp=points[index].bucket_start,
                    observed_value=observed,
                    expected_value=float(mean),
                    z_score=z_score,
                    severity=classify_severity(z_score),
                    deviation_percent=(observed - float(mean)) / float(mean) * 100
                    if mean != 0.0
                    else None,
                )
            )

        logger.debug(
            "anomalies.detected",
            metric=metric.value,
            points=len(points),
            analyzed=len(means),
            anomalies=len(anomalies),
            threshold=self.threshold,
        )
        return anomalies

    def points_analyzed(self, point_count: int) -> int:
        """Number of points that have a full trailing window."""
        return max(point_count - self.window, 0)


def detect(
    points: Sequence[TimeSeriesPoint],
    metric: Metric,
    threshold: float = 2.0,
    window: int = 7,
    inclusive: bool = False,
) -> list[AnomalyRecord]:
    """Convenience wrapper around AnomalyDetector.detect()."""
    return AnomalyDetector(threshold=threshold, window=window, inclusive=inclusive).detect(
        points, metric
    )
