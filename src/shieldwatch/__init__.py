"""ShieldWatch - Suspicious Login Detection & Alert Correlation."""

__version__ = "0.1.0"
__author__ = "ShieldWatch Team"

# Core exports
from shieldwatch.core.types import DetectionType, Severity, LoginOutcome

__all__ = [
    "DetectionType",
    "Severity",
    "LoginOutcome",
]
