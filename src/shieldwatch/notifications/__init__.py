"""Notifications - alert delivery to logs, dashboards and SIEM."""

from shieldwatch.notifications.siem import (
    BackgroundSIEMWriter,
    InMemorySIEMExporter,
    S3SIEMExporter,
    SIEMExporter,
)
from shieldwatch.notifications.sink import DashboardCallback, NotificationSink

__all__ = [
    "BackgroundSIEMWriter",
    "InMemorySIEMExporter",
    "S3SIEMExporter",
    "SIEMExporter",
    "DashboardCallback",
    "NotificationSink",
]
