"""Alert Correlator - throttles near-duplicate detections.

A detection becomes an Alert unless an alert of the same type for the
same subject was raised within the throttle window. Timing uses the
detection (event) time, so replayed events throttle the same way live
ones do.
"""

from datetime import datetime, timedelta
import logging
import threading
from typing import Callable, List, Optional, Union

from shieldwatch.common.config.rules import DetectionRules
from shieldwatch.common.constants import CorrelationConstants
from shieldwatch.data.schemas.alert import (
    Alert,
    Detection,
    RecentAlertRecord,
    Suppressed,
)

logger = logging.getLogger(__name__)


CorrelationResult = Union[Alert, Suppressed]
SuppressionCallback = Callable[[str], None]


class AlertCorrelator:
    """Deduplicates detections per (subject, detection type).

    Thread-safe: correlate() and sweep() may be called from different
    threads.
    """

    def __init__(
        self,
        rules: Optional[DetectionRules] = None,
        on_suppressed: Optional[SuppressionCallback] = None,
        max_records: int = CorrelationConstants.RECENT_ALERT_MAX_RECORDS,
    ):
        """Initialize the correlator.

        Args:
            rules: Detection rules (throttle window, record max age)
            on_suppressed: Called with the existing alert id when a
                detection is suppressed
            max_records: Upper bound on retained records
        """
        rules = rules or DetectionRules()
        self.throttle_window = timedelta(minutes=rules.correlation.throttle_minutes)
        self.max_age = timedelta(hours=rules.correlation.recent_alert_max_age_hours)
        self.max_records = max_records
        self.on_suppressed = on_suppressed

        self._records: List[RecentAlertRecord] = []
        self._latest: Optional[datetime] = None
        self._lock = threading.Lock()

    def correlate(
        self, detection: Detection, now: Optional[datetime] = None
    ) -> CorrelationResult:
        """Turn a detection into a new Alert, or suppress it.

        Args:
            detection: Detection emitted by the bank
            now: Reference time, defaults to the detection time

        Returns:
            A new Alert, or Suppressed naming the alert that absorbed it
        """
        at = now or detection.detected_at
        with self._lock:
            if self._latest is None or at > self._latest:
                self._latest = at
            existing = self._find_recent(detection, at)
            if existing is None:
                alert = Alert.from_detection(detection)
                self._records.append(RecentAlertRecord(
                    detection_type=detection.detection_type,
                    subject=detection.subject,
                    severity=detection.severity,
                    timestamp=at,
                    alert_id=alert.alert_id,
                ))
                if len(self._records) > self.max_records:
                    self._records = self._records[-self.max_records:]

        if existing is not None:
            logger.info(
                f"Alert throttled: {detection.detection_type.value} for {detection.subject}",
                extra={"alert_id": existing.alert_id},
            )
            if self.on_suppressed is not None:
                self.on_suppressed(existing.alert_id)
            return Suppressed(
                detection_type=detection.detection_type,
                subject=detection.subject,
                alert_id=existing.alert_id,
            )

        return alert

    def _find_recent(
        self, detection: Detection, at: datetime
    ) -> Optional[RecentAlertRecord]:
        for record in reversed(self._records):
            if (
                record.detection_type == detection.detection_type
                and record.subject == detection.subject
                and abs(at - record.timestamp) < self.throttle_window
            ):
                return record
        return None

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Drop records older than the maximum age.

        Idempotent: running it twice with the same clock removes nothing
        the second time.

        Args:
            now: Reference time. Defaults to the newest detection time seen,
                so records age by event time like the throttle itself.

        Returns:
            Number of records removed
        """
        with self._lock:
            now = now or self._latest
            if now is None:
                return 0
            before = len(self._records)
            self._records = [r for r in self._records if now - r.timestamp < self.max_age]
            removed = before - len(self._records)

        if removed:
            logger.debug(f"Swept {removed} recent alert records")
        return removed

    def recent_records(self) -> List[RecentAlertRecord]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
