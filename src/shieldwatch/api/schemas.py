"""API Schemas - Request/Response models for the API Gateway.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from shieldwatch.core.types import DetectionType, LoginOutcome, Severity
from shieldwatch.data.schemas.alert import Alert


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class GeoLocationRequest(BaseModel):
    """Geographic location in request."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    city: Optional[str] = Field(default=None, description="City name")
    country: Optional[str] = Field(
        default=None, min_length=2, max_length=2,
        description="ISO 3166-1 alpha-2 country code"
    )


class LoginEventRequest(BaseModel):
    """Request body for POST /events/login."""
    event_id: Optional[str] = Field(
        default=None, description="Event identifier, generated if absent"
    )
    subject: str = Field(..., min_length=1, description="Account identifier")
    source_address: str = Field(..., min_length=1, description="Client IP address")
    user_agent: str = Field(default="unknown", description="Client user-agent string")
    timestamp: datetime = Field(..., description="Event timestamp")
    outcome: LoginOutcome = Field(..., description="success or failure")
    geo_location: Optional[GeoLocationRequest] = Field(
        default=None, description="Location resolved upstream, if any"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "subject": "user@example.com",
                "source_address": "203.0.113.7",
                "user_agent": "Mozilla/5.0 (X11; Linux x86_64) Firefox/121.0",
                "timestamp": "2026-01-28T14:30:05Z",
                "outcome": "failure",
            }
        }
    }


class ResolveAlertRequest(BaseModel):
    """Request body for POST /alerts/{alert_id}/resolve."""
    resolution: str = Field(default="resolved", max_length=1000)


class FalsePositiveRequest(BaseModel):
    """Request body for POST /alerts/{alert_id}/false-positive."""
    reason: str = Field(default="", max_length=1000)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class AlertSummary(BaseModel):
    """Compact view of a newly raised alert."""
    alert_id: str
    detection_type: DetectionType
    severity: Severity
    subject: str
    source_address: str
    explanation: str
    detected_at: datetime

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertSummary":
        return cls(
            alert_id=alert.alert_id,
            detection_type=alert.detection_type,
            severity=alert.severity,
            subject=alert.subject,
            source_address=alert.source_address,
            explanation=alert.explanation,
            detected_at=alert.detected_at,
        )


class IngestResponse(BaseModel):
    """Response for POST /events/login."""
    event_id: str
    alerts: List[AlertSummary] = Field(default_factory=list)
    suppressed: int = Field(default=0, ge=0, description="Throttled duplicate detections")

    model_config = {
        "json_schema_extra": {
            "example": {
                "event_id": "evt_a1b2c3d4e5f6",
                "alerts": [{
                    "alert_id": "alt_0f1e2d3c4b5a",
                    "detection_type": "multiple_failed_attempts",
                    "severity": "medium",
                    "subject": "user@example.com",
                    "source_address": "203.0.113.7",
                    "explanation": "5 failed login attempts in 15 minutes for user@example.com",
                    "detected_at": "2026-01-28T14:30:05Z",
                }],
                "suppressed": 0,
            }
        }
    }


class AlertListResponse(BaseModel):
    """Response for GET /alerts."""
    alerts: List[Alert]
    count: int


class AlertStatsResponse(BaseModel):
    """Response for GET /alerts/stats."""
    total: int
    active: int
    resolved: int
    false_positives: int
    by_type: Dict[str, int]
    by_severity: Dict[str, int]
    by_address: Dict[str, int]
    by_subject: Dict[str, int]


class DetectionStatsResponse(BaseModel):
    """Response for GET /detections/stats."""
    total_detections: int
    by_type: Dict[str, int]
    false_positives: int


class LoginStatistics(BaseModel):
    total_logins: int
    successful_logins: int
    failed_logins: int
    success_rate: Optional[float] = Field(default=None, description="Percent, None without logins")
    distinct_devices: int
    distinct_addresses: int


class LastLogin(BaseModel):
    timestamp: datetime
    source_address: str
    user_agent: str


class SubjectReportResponse(BaseModel):
    """Response for GET /subjects/{subject}/report."""
    subject: str
    report_date: datetime
    known_subject: bool
    statistics: LoginStatistics
    last_successful_login: Optional[LastLogin] = None
    active_alerts: List[Alert]
    risk_level: str = Field(..., description="Highest active alert severity, or none")


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    details: Dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = Field(
        default=None, description="Request ID for debugging"
    )
