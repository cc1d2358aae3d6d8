"""API - login ingestion and alert management endpoints.

    POST /events/login
    GET  /alerts, /alerts/{alert_id}, /alerts/stats
    POST /alerts/{alert_id}/resolve, /alerts/{alert_id}/false-positive
    GET  /detections/stats, /subjects/{subject}/report
"""

from shieldwatch.api.gateway import app
from shieldwatch.api.schemas import (
    AlertSummary,
    ErrorResponse,
    IngestResponse,
    LoginEventRequest,
)
from shieldwatch.api.service import AlertService

__all__ = [
    "app",
    "AlertSummary",
    "ErrorResponse",
    "IngestResponse",
    "LoginEventRequest",
    "AlertService",
]
