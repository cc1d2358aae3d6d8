"""Core types and enums."""

from enum import Enum


class LoginOutcome(str, Enum):
    """Outcome of an authentication attempt."""
    SUCCESS = "success"
    FAILURE = "failure"


class Severity(str, Enum):
    """Severity levels, ordered from least to most severe."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, threshold: "Severity") -> bool:
        """Check whether this severity is at or above a threshold."""
        return self.rank >= Severity(threshold).rank

    @classmethod
    def highest(cls, severities) -> "Severity | None":
        """Most severe of an iterable of severities, None if empty."""
        ranked = sorted((cls(s) for s in severities), key=lambda s: s.rank)
        return ranked[-1] if ranked else None


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class DetectionType(str, Enum):
    """Kinds of suspicious-login detections."""
    UNUSUAL_LOGIN_HOUR = "unusual_login_hour"
    UNUSUAL_LOCATION = "unusual_location"
    MULTI_DEVICE_LOGIN = "multi_device_login"
    MULTIPLE_FAILED_ATTEMPTS = "multiple_failed_attempts"
    BRUTE_FORCE_ATTEMPT = "brute_force_attempt"
    BEHAVIOR_CHANGE = "behavior_change"
    SIMULTANEOUS_LOGINS = "simultaneous_logins"


class AlertStatus(str, Enum):
    """Alert lifecycle states."""
    ACTIVE = "active"
    RESOLVED = "resolved"


class ActionType(str, Enum):
    """Protective side effects taken in response to an alert."""
    BLOCK_ADDRESS = "block_address"
    INVALIDATE_SESSIONS = "invalidate_sessions"
    REQUIRE_VERIFICATION = "require_verification"
    LOCK_ACCOUNT = "lock_account"


class ActionStatus(str, Enum):
    """Outcome of a dispatched action."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
