"""Governance schemas - audit trail entries."""

from datetime import datetime, timezone
from enum import Enum
import json
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of audit events."""
    ALERT_CREATED = "alert_created"
    ACTION_TAKEN = "action_taken"
    ALERT_RESOLVED = "alert_resolved"
    FALSE_POSITIVE = "false_positive"
    SYSTEM_EVENT = "system_event"


class AuditEntry(BaseModel):
    """A single immutable audit log entry."""
    entry_id: str = Field(
        default_factory=lambda: f"aud_{uuid4().hex[:12]}",
        description="Unique entry identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the entry was created"
    )
    event_type: AuditEventType = Field(
        ...,
        description="Type of event being logged"
    )

    alert_id: Optional[str] = Field(default=None, description="Associated alert ID")
    subject: Optional[str] = Field(default=None, description="Account the entry concerns")
    detection_type: Optional[str] = None
    severity: Optional[str] = None
    action: Optional[str] = Field(default=None, description="Action taken or proposed")

    metadata: Dict[str, Any] = Field(default_factory=dict)

    # Hash chain
    previous_hash: Optional[str] = None
    entry_hash: Optional[str] = None

    model_config = {"frozen": True}

    def to_jsonl(self) -> str:
        return json.dumps(self.model_dump(mode="json"), sort_keys=True, default=str)

    @classmethod
    def from_jsonl(cls, line: str) -> "AuditEntry":
        return cls.model_validate(json.loads(line))
