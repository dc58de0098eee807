"""Pydantic schemas for anomaly detection results."""

from datetime import date
from enum import Enum

from pydantic import Field

from finadvisor.features.analytics.schemas import Granularity, Metric
from finadvisor.shared.schemas import CamelModel


class Severity(str, Enum):
    """Anomaly severity by z-score: > 3 high, > 2.5 medium, otherwise low."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnomalyRecord(CamelModel):
    """A bucket whose metric deviates from its trailing window."""

    metric: Metric = Field(..., description="Metric that was analysed")
    timestamp: date = Field(..., description="Start of the anomalous bucket")
    observed_value: float = Field(..., description="Metric value in the bucket")
    expected_value: float = Field(..., description="Mean of the trailing window")
    z_score: float | None = Field(
        ...,
        description="|observed - expected| / std of the trailing window; "
        "null when the window has zero variance",
    )
    severity: Severity = Field(..., description="low, medium or high")
    deviation_percent: float | None = Field(
        None,
        description="(observed - expected) / expected * 100; null when expected is 0",
    )


class AnomalyReport(CamelModel):
    """Result of the detect_anomalies tool."""

    metric: Metric = Field(..., description="Metric that was analysed")
    granularity: Granularity = Field(..., description="Bucket size of the series")
    start_date: date = Field(..., description="Series start (inclusive)")
    end_date: date = Field(..., description="Series end (inclusive)")
    threshold: float = Field(..., gt=0, description="z-score threshold")
    window_size: int = Field(..., ge=2, description="Trailing window length")
    points_analyzed: int = Field(..., ge=0, description="Points with a full trailing window")
    anomalies: list[AnomalyRecord] = Field(..., description="Anomalies in chronological order")
