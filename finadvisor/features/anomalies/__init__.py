"""Anomaly detection over time-bucketed sales metrics."""

from finadvisor.features.anomalies.detector import AnomalyDetector, classify_severity, detect
from finadvisor.features.anomalies.schemas import AnomalyRecord, AnomalyReport, Severity

__all__ = [
    "AnomalyDetector",
    "AnomalyRecord",
    "AnomalyReport",
    "Severity",
    "classify_severity",
    "detect",
]
