"""Detection - suspicious-login heuristics and the bank that runs them."""

from shieldwatch.detection.bank import BankResult, DetectorBank, RegisteredDetector
from shieldwatch.detection.detectors import (
    behavior_anomaly_score,
    detect_behavior_change,
    detect_brute_force,
    detect_multi_device_login,
    detect_multiple_failed_attempts,
    detect_simultaneous_logins,
    detect_unusual_hour,
    detect_unusual_location,
)
from shieldwatch.detection.geo import (
    DistanceEstimator,
    GeoLocator,
    StaticGeoLocator,
    haversine_km,
)

__all__ = [
    "BankResult",
    "DetectorBank",
    "RegisteredDetector",
    "behavior_anomaly_score",
    "detect_behavior_change",
    "detect_brute_force",
    "detect_multi_device_login",
    "detect_multiple_failed_attempts",
    "detect_simultaneous_logins",
    "detect_unusual_hour",
    "detect_unusual_location",
    "DistanceEstimator",
    "GeoLocator",
    "StaticGeoLocator",
    "haversine_km",
]
