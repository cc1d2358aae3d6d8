"""Core types."""

from shieldwatch.core.types import (
    LoginOutcome,
    Severity,
    DetectionType,
    AlertStatus,
    ActionType,
    ActionStatus,
)

__all__ = [
    "LoginOutcome",
    "Severity",
    "DetectionType",
    "AlertStatus",
    "ActionType",
    "ActionStatus",
]
