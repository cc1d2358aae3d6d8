"""Data schemas - canonical Pydantic definitions."""

from shieldwatch.data.schemas.login_event import GeoLocation, LoginEvent, parse_login_event
from shieldwatch.data.schemas.alert import (
    Alert,
    AlertAction,
    Detection,
    RecentAlertRecord,
    Suppressed,
)

__all__ = [
    "GeoLocation",
    "LoginEvent",
    "parse_login_event",
    "Alert",
    "AlertAction",
    "Detection",
    "RecentAlertRecord",
    "Suppressed",
]
