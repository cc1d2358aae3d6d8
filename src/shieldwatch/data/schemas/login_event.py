"""LoginEvent schema - canonical definition."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError, field_validator

from shieldwatch.common.exceptions import InvalidEventError
from shieldwatch.core.types import LoginOutcome


# Subjects emitted by the platform itself, never modeled.
RESERVED_SUBJECTS = frozenset({"system", "système"})


class GeoLocation(BaseModel):
    """Geographic location resolved by the authentication layer."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    city: Optional[str] = Field(default=None, description="City name")
    country: Optional[str] = Field(
        default=None, min_length=2, max_length=2,
        description="ISO 3166-1 alpha-2 country code"
    )

    model_config = {"frozen": True}


class LoginEvent(BaseModel):
    """Login event entity schema.

    Immutable fact produced by the authentication layer and consumed
    exactly once by the ingest pipeline.
    """
    event_id: str = Field(
        default_factory=lambda: f"evt_{uuid4().hex[:12]}",
        description="Unique event identifier"
    )
    subject: str = Field(..., description="Account identifier (usually an email)")
    source_address: str = Field(..., min_length=1, description="Client IP address")
    user_agent: str = Field(default="unknown", description="Client user-agent string")
    timestamp: datetime = Field(..., description="Event timestamp")
    outcome: LoginOutcome = Field(..., description="Whether the attempt succeeded")
    geo_location: Optional[GeoLocation] = Field(
        default=None, description="Location resolved upstream, if any"
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "event_id": "evt_abc123",
                "subject": "user@example.com",
                "source_address": "10.0.0.5",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                "timestamp": "2026-01-25T14:30:05Z",
                "outcome": "failure",
            }
        }
    }

    @field_validator("subject")
    @classmethod
    def _check_subject(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("subject must not be blank")
        if value.lower() in RESERVED_SUBJECTS:
            raise ValueError(f"subject '{value}' is reserved")
        return value

    @field_validator("timestamp")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        # Naive timestamps are taken as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def is_success(self) -> bool:
        return self.outcome == LoginOutcome.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.outcome == LoginOutcome.FAILURE


def parse_login_event(payload: Dict[str, Any]) -> LoginEvent:
    """Validate a raw payload into a LoginEvent.

    Raises:
        InvalidEventError: If the payload is malformed
    """
    if not isinstance(payload, dict):
        raise InvalidEventError("Login event payload must be a mapping")
    try:
        return LoginEvent.model_validate(payload)
    except ValidationError as e:
        raise InvalidEventError(
            "Malformed login event",
            details={"errors": e.errors(
                include_url=False, include_context=False, include_input=False
            )},
        ) from e
