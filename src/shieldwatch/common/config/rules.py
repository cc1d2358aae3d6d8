"""Detection rules - thresholds for detectors, correlation and response.

In-memory representation of detection_rules.yaml. Every field has a
default so a missing file yields the stock configuration.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from shieldwatch.common.constants import CorrelationConstants, ResponseConstants
from shieldwatch.common.exceptions import ConfigurationError
from shieldwatch.common.logging import get_logger
from shieldwatch.core.types import Severity

logger = get_logger(__name__)


class DetectionRules(BaseModel):
    """Parsed detection rules.

    Used by the detector bank, the alert correlator, the action
    dispatcher and the notification sink.
    """

    class UnusualHourRules(BaseModel):
        enabled: bool = True
        start_hour: int = Field(default=22, ge=0, le=23)
        end_hour: int = Field(default=6, ge=0, le=23)
        min_login_count: int = Field(default=5, ge=1)
        rare_hour_percent: float = Field(default=10.0, gt=0, le=100)
        very_rare_hour_percent: float = Field(default=5.0, gt=0, le=100)

    class UnusualLocationRules(BaseModel):
        enabled: bool = True
        distance_threshold_km: float = Field(default=500.0, gt=0)
        time_window_hours: float = Field(default=24.0, gt=0)
        lookup_timeout_seconds: float = Field(default=1.0, gt=0)

    class MultiDeviceRules(BaseModel):
        enabled: bool = True
        device_count: int = Field(default=3, ge=2)
        time_window_hours: float = Field(default=1.0, gt=0)

    class FailedAttemptRules(BaseModel):
        enabled: bool = True
        threshold: int = Field(default=5, ge=1)
        time_window_minutes: float = Field(default=15.0, gt=0)
        progressive_blocking: bool = True

    class BruteForceRules(BaseModel):
        enabled: bool = True
        attempts_per_minute: int = Field(default=10, ge=1)
        block_duration_minutes: int = Field(default=60, ge=1)

    class BehaviorChangeRules(BaseModel):
        enabled: bool = True
        sensitivity_level: int = Field(default=2, ge=1, le=3)
        learning_period_days: float = Field(default=14.0, ge=0)
        minimum_data_points: int = Field(default=20, ge=1)
        anomaly_threshold: float = Field(default=0.8, ge=0.0)

    class SimultaneousLoginRules(BaseModel):
        enabled: bool = True
        time_window_minutes: float = Field(default=5.0, gt=0)
        different_locations: bool = True

    class CorrelationRules(BaseModel):
        throttle_minutes: float = Field(
            default=CorrelationConstants.THROTTLE_MINUTES, ge=0
        )
        recent_alert_max_age_hours: float = Field(
            default=CorrelationConstants.RECENT_ALERT_MAX_AGE_HOURS, gt=0
        )

    class ResponseRules(BaseModel):
        block_suspicious_addresses: bool = True
        lock_accounts: bool = True
        account_lock_minutes: int = Field(default=30, ge=1)
        progressive_base_minutes: float = Field(
            default=ResponseConstants.PROGRESSIVE_BASE_MINUTES, gt=0
        )
        progressive_factor: float = Field(
            default=ResponseConstants.PROGRESSIVE_FACTOR, ge=1.0
        )
        progressive_cap_minutes: float = Field(
            default=ResponseConstants.PROGRESSIVE_CAP_MINUTES, gt=0
        )

    class NotificationRules(BaseModel):
        log_alerts: bool = True
        dashboard: bool = True
        siem_enabled: bool = True
        siem_min_severity: Severity = Severity.MEDIUM

    version: str = "1.0.0"
    unusual_hours: UnusualHourRules = Field(default_factory=UnusualHourRules)
    unusual_locations: UnusualLocationRules = Field(default_factory=UnusualLocationRules)
    multi_device_login: MultiDeviceRules = Field(default_factory=MultiDeviceRules)
    failed_attempts: FailedAttemptRules = Field(default_factory=FailedAttemptRules)
    brute_force: BruteForceRules = Field(default_factory=BruteForceRules)
    behavior_change: BehaviorChangeRules = Field(default_factory=BehaviorChangeRules)
    simultaneous_logins: SimultaneousLoginRules = Field(default_factory=SimultaneousLoginRules)
    correlation: CorrelationRules = Field(default_factory=CorrelationRules)
    response: ResponseRules = Field(default_factory=ResponseRules)
    notifications: NotificationRules = Field(default_factory=NotificationRules)


def parse_rules(raw_config: Optional[Dict[str, Any]]) -> DetectionRules:
    """Validate a raw mapping into DetectionRules.

    Raises:
        ConfigurationError: If the mapping does not validate
    """
    try:
        return DetectionRules.model_validate(raw_config or {})
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid detection rules",
            details={"errors": e.errors(include_url=False)},
        ) from e


def load_rules(rules_file: Optional[Union[str, Path]] = None) -> DetectionRules:
    """Load detection rules from YAML.

    A missing file is not an error: the defaults are returned.

    Args:
        rules_file: Path to detection_rules.yaml

    Raises:
        ConfigurationError: If the file is unreadable or invalid
    """
    if rules_file is None:
        return DetectionRules()

    path = Path(rules_file)
    if not path.exists():
        logger.warning(f"Rules file {path} not found, using default detection rules")
        return DetectionRules()

    try:
        with open(path, "r") as f:
            raw_config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Could not read rules file {path}", details={"error": str(e)}
        ) from e

    rules = parse_rules(raw_config)
    logger.info(f"Loaded detection rules version {rules.version} from {path}")
    return rules
