"""Anomaly detection engine — statistical deviations from history."""

from timetrust.engines.anomaly.anomaly_detector import AnomalyDetector

__all__ = ["AnomalyDetector"]
