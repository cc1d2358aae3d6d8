"""Alerts - throttling of detections and the alert lifecycle."""

from shieldwatch.alerts.correlator import AlertCorrelator, CorrelationResult
from shieldwatch.alerts.manager import AlertManager, DetectionStats

__all__ = [
    "AlertCorrelator",
    "CorrelationResult",
    "AlertManager",
    "DetectionStats",
]
