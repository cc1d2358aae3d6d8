"""Detection and Alert schemas.

A Detection is the ephemeral output of a single detector. An Alert is a
Detection that survived throttling and carries a lifecycle.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from shieldwatch.core.types import (
    ActionStatus,
    ActionType,
    AlertStatus,
    DetectionType,
    Severity,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Detection(BaseModel):
    """Output of a single detector for a single event."""
    detection_type: DetectionType
    severity: Severity
    explanation: str = Field(..., description="Human-readable explanation")
    evidence: Dict[str, Any] = Field(default_factory=dict)
    subject: str
    source_address: str
    detected_at: datetime = Field(..., description="Time of the triggering event")

    model_config = {"frozen": True}


class AlertAction(BaseModel):
    """A side effect attempted for an alert."""
    action_type: ActionType
    status: ActionStatus
    details: str = ""
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def failed(self) -> bool:
        return self.status == ActionStatus.FAILED


class Alert(BaseModel):
    """A correlated detection with an active/resolved lifecycle."""
    alert_id: str = Field(default_factory=lambda: f"alt_{uuid4().hex[:12]}")
    detection_type: DetectionType
    severity: Severity
    explanation: str
    evidence: Dict[str, Any] = Field(default_factory=dict)
    subject: str
    source_address: str
    detected_at: datetime
    created_at: datetime = Field(default_factory=_utcnow)
    status: AlertStatus = AlertStatus.ACTIVE
    actions: List[AlertAction] = Field(default_factory=list)
    suppressed_count: int = Field(default=0, ge=0)
    resolved_at: Optional[datetime] = None
    resolution: Optional[str] = None
    false_positive: bool = False

    @classmethod
    def from_detection(cls, detection: Detection) -> "Alert":
        return cls(
            detection_type=detection.detection_type,
            severity=detection.severity,
            explanation=detection.explanation,
            evidence=dict(detection.evidence),
            subject=detection.subject,
            source_address=detection.source_address,
            detected_at=detection.detected_at,
        )

    @property
    def is_active(self) -> bool:
        return self.status == AlertStatus.ACTIVE

    @property
    def has_failed_actions(self) -> bool:
        return any(action.failed for action in self.actions)


class RecentAlertRecord(BaseModel):
    """Short-lived record kept only for throttling."""
    detection_type: DetectionType
    subject: str
    severity: Severity
    timestamp: datetime
    alert_id: str

    model_config = {"frozen": True}


class Suppressed(BaseModel):
    """Result of correlating a detection that was throttled."""
    detection_type: DetectionType
    subject: str
    alert_id: str = Field(..., description="The existing alert that absorbed it")
    reason: str = "throttled"

    model_config = {"frozen": True}
