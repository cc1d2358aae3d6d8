"""Detector Bank - runs every enabled detector against one event.

Detectors are isolated from each other: one that raises is logged and
skipped, and the rest still run.
"""

from dataclasses import dataclass
from functools import partial
import logging
from typing import Callable, List, Optional

from shieldwatch.common.config.rules import DetectionRules
from shieldwatch.common.exceptions import DetectorError
from shieldwatch.core.types import DetectionType
from shieldwatch.data.schemas.alert import Detection
from shieldwatch.data.schemas.login_event import LoginEvent
from shieldwatch.detection import detectors
from shieldwatch.detection.geo import DistanceEstimator
from shieldwatch.models.behavior.profile import BehaviorModel

logger = logging.getLogger(__name__)


DetectorFn = Callable[[LoginEvent, BehaviorModel, DetectionRules], Optional[Detection]]


@dataclass
class RegisteredDetector:
    """A detector function and the rule switch that enables it."""
    detection_type: DetectionType
    fn: DetectorFn
    is_enabled: Callable[[DetectionRules], bool]


@dataclass
class BankResult:
    """Detections for one event, plus the detectors that failed."""
    detections: List[Detection]
    errors: List[DetectorError]


class DetectorBank:
    """Evaluates the seven suspicious-login detectors.

    Features:
    - Per-detector enable flags read from DetectionRules
    - Pluggable distance estimator for location jumps
    - Structured error collection
    """

    def __init__(
        self,
        rules: Optional[DetectionRules] = None,
        distance_estimator: Optional[DistanceEstimator] = None,
        extra_detectors: Optional[List[RegisteredDetector]] = None,
    ):
        """Initialize the bank.

        Args:
            rules: Detection thresholds. Defaults used if not provided.
            distance_estimator: Estimator for location jumps. Without one the
                unusual-location detector never fires.
            extra_detectors: Additional detectors appended after the built-in ones.
        """
        self.rules = rules or DetectionRules()
        self.distance_estimator = distance_estimator or DistanceEstimator(
            timeout_seconds=self.rules.unusual_locations.lookup_timeout_seconds
        )

        self._detectors: List[RegisteredDetector] = [
            RegisteredDetector(
                DetectionType.UNUSUAL_LOGIN_HOUR,
                detectors.detect_unusual_hour,
                lambda r: r.unusual_hours.enabled,
            ),
            RegisteredDetector(
                DetectionType.UNUSUAL_LOCATION,
                partial(
                    detectors.detect_unusual_location,
                    distance_estimator=self.distance_estimator,
                ),
                lambda r: r.unusual_locations.enabled,
            ),
            RegisteredDetector(
                DetectionType.MULTI_DEVICE_LOGIN,
                detectors.detect_multi_device_login,
                lambda r: r.multi_device_login.enabled,
            ),
            RegisteredDetector(
                DetectionType.MULTIPLE_FAILED_ATTEMPTS,
                detectors.detect_multiple_failed_attempts,
                lambda r: r.failed_attempts.enabled,
            ),
            RegisteredDetector(
                DetectionType.BRUTE_FORCE_ATTEMPT,
                detectors.detect_brute_force,
                lambda r: r.brute_force.enabled,
            ),
            RegisteredDetector(
                DetectionType.BEHAVIOR_CHANGE,
                detectors.detect_behavior_change,
                lambda r: r.behavior_change.enabled,
            ),
            RegisteredDetector(
                DetectionType.SIMULTANEOUS_LOGINS,
                detectors.detect_simultaneous_logins,
                lambda r: r.simultaneous_logins.enabled,
            ),
        ]
        self._detectors.extend(extra_detectors or [])

    @property
    def detector_types(self) -> List[DetectionType]:
        return [d.detection_type for d in self._detectors]

    def run(self, event: LoginEvent, model: BehaviorModel) -> BankResult:
        """Run all enabled detectors.

        Args:
            event: The event being processed
            model: The subject's model, already updated with the event

        Returns:
            BankResult with zero or more detections
        """
        detections: List[Detection] = []
        errors: List[DetectorError] = []

        for detector in self._detectors:
            if not detector.is_enabled(self.rules):
                continue
            try:
                detection = detector.fn(event, model, self.rules)
            except Exception as e:
                error = DetectorError(
                    f"{type(e).__name__}: {e}",
                    detector_name=detector.detection_type.value,
                    details={"event_id": event.event_id},
                )
                logger.warning(
                    f"Detector {detector.detection_type.value} failed: {error.message}",
                    extra={"subject": event.subject, "event_id": event.event_id},
                )
                errors.append(error)
                continue

            if detection is not None:
                detections.append(detection)

        return BankResult(detections=detections, errors=errors)
