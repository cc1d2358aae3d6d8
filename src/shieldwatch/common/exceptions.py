"""Custom exceptions for ShieldWatch.

Provides a hierarchy of exceptions for different error types.
All ShieldWatch exceptions inherit from ShieldWatchError.
"""

from typing import Any, Dict, Optional


class ShieldWatchError(Exception):
    """Base exception for all ShieldWatch errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: str = "SHIELDWATCH_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ShieldWatchError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIG_ERROR", details=details)


class InvalidEventError(ShieldWatchError):
    """Raised when an ingested login event is malformed.

    The event is rejected and never reaches the behavior model.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INVALID_EVENT", details=details)


class DetectorError(ShieldWatchError):
    """Raised when a single detector fails to evaluate an event."""

    def __init__(
        self,
        message: str,
        detector_name: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["detector_name"] = detector_name
        super().__init__(message, code="DETECTOR_ERROR", details=details)


class ActionDispatchError(ShieldWatchError):
    """Raised when a side-effect collaborator fails or times out."""

    def __init__(
        self,
        message: str,
        action_type: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["action_type"] = action_type
        super().__init__(message, code="ACTION_DISPATCH_ERROR", details=details)


class StorageError(ShieldWatchError):
    """Raised when behavior model or alert persistence fails."""

    def __init__(
        self,
        message: str,
        code: str = "STORAGE_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code=code, details=details)


class StorageCapacityError(StorageError):
    """Raised when a storage backend is out of space."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="STORAGE_CAPACITY", details=details)


class AlertNotFoundError(ShieldWatchError):
    """Raised when an alert id is unknown."""

    def __init__(self, alert_id: str):
        super().__init__(
            f"Alert '{alert_id}' not found",
            code="ALERT_NOT_FOUND",
            details={"alert_id": alert_id},
        )


class AlertStateError(ShieldWatchError):
    """Raised when an alert lifecycle transition is not allowed."""

    def __init__(self, message: str, alert_id: str):
        super().__init__(message, code="ALERT_STATE", details={"alert_id": alert_id})
