"""Alert Manager - owns the alert lifecycle.

Alerts enter through register(), accumulate actions and suppressed
duplicates while active, and leave the active set when resolved or
marked as false positives. Every transition is audit-logged when an
AuditLogger is attached.
"""

from collections import Counter, OrderedDict
from datetime import datetime, timezone
import logging
import threading
from typing import Any, Dict, List, Optional

from shieldwatch.common.exceptions import AlertNotFoundError, AlertStateError
from shieldwatch.core.types import AlertStatus, DetectionType, Severity
from shieldwatch.data.schemas.alert import Alert, AlertAction, Detection
from shieldwatch.governance.audit.logger import AuditLogger

logger = logging.getLogger(__name__)


class DetectionStats:
    """Running detection counters.

    Counts every detection the bank emits, including the ones the
    correlator later throttles.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._total = 0
        self._by_type: Counter = Counter()
        self._false_positives = 0

    def record(self, detection: Detection) -> None:
        with self._lock:
            self._total += 1
            self._by_type[detection.detection_type.value] += 1

    def record_false_positive(self) -> None:
        with self._lock:
            self._false_positives += 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_detections": self._total,
                "by_type": dict(self._by_type),
                "false_positives": self._false_positives,
            }

    def reset(self) -> None:
        with self._lock:
            self._total = 0
            self._by_type.clear()
            self._false_positives = 0


class AlertManager:
    """Holds active and resolved alerts.

    Returned alerts are copies; changes go through the manager so they
    are serialized and audited.
    """

    DEFAULT_MAX_RESOLVED = 10000

    def __init__(
        self,
        audit_logger: Optional[AuditLogger] = None,
        detection_stats: Optional[DetectionStats] = None,
        max_resolved: int = DEFAULT_MAX_RESOLVED,
    ):
        """Initialize the manager.

        Args:
            audit_logger: Audit trail for lifecycle transitions
            detection_stats: Counters updated on false-positive marking
            max_resolved: Resolved alerts kept in memory (oldest dropped)
        """
        self.audit_logger = audit_logger
        self.detection_stats = detection_stats or DetectionStats()
        self.max_resolved = max_resolved

        self._active: "OrderedDict[str, Alert]" = OrderedDict()
        self._resolved: "OrderedDict[str, Alert]" = OrderedDict()
        self._lock = threading.RLock()

    def _audit(self, method: str, *args) -> None:
        if self.audit_logger is None:
            return
        try:
            getattr(self.audit_logger, method)(*args)
        except OSError as e:
            logger.error(f"Audit write failed ({method}): {e}")

    def register(self, alert: Alert) -> Alert:
        """Add a new alert to the active set."""
        with self._lock:
            if alert.alert_id in self._active or alert.alert_id in self._resolved:
                raise AlertStateError(
                    f"Alert '{alert.alert_id}' is already registered", alert.alert_id
                )
            self._active[alert.alert_id] = alert

        logger.info(
            f"Alert raised: {alert.detection_type.value} ({alert.severity.value}) "
            f"for {alert.subject}",
            extra={"alert_id": alert.alert_id},
        )
        self._audit("log_alert_created", alert)
        return alert.model_copy(deep=True)

    def _find(self, alert_id: str) -> Alert:
        alert = self._active.get(alert_id) or self._resolved.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    def get(self, alert_id: str) -> Alert:
        """Look up an alert by id.

        Raises:
            AlertNotFoundError: If the id is unknown
        """
        with self._lock:
            return self._find(alert_id).model_copy(deep=True)

    def query(
        self,
        status: Optional[AlertStatus] = None,
        severity: Optional[Severity] = None,
        detection_type: Optional[DetectionType] = None,
        since: Optional[datetime] = None,
        subject: Optional[str] = None,
    ) -> List[Alert]:
        """List alerts matching all given filters, newest first.

        Args:
            status: Only active or only resolved alerts
            severity: Minimum severity
            detection_type: Exact detection type
            since: Only alerts detected at or after this time
            subject: Exact subject
        """
        if since is not None and since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)

        with self._lock:
            if status == AlertStatus.ACTIVE:
                candidates = list(self._active.values())
            elif status == AlertStatus.RESOLVED:
                candidates = list(self._resolved.values())
            else:
                candidates = list(self._active.values()) + list(self._resolved.values())

            matches = [
                alert.model_copy(deep=True) for alert in candidates
                if (severity is None or alert.severity.at_least(severity))
                and (detection_type is None or alert.detection_type == detection_type)
                and (since is None or alert.detected_at >= since)
                and (subject is None or alert.subject == subject)
            ]

        return sorted(matches, key=lambda a: a.detected_at, reverse=True)

    def active_alerts(self, subject: Optional[str] = None) -> List[Alert]:
        return self.query(status=AlertStatus.ACTIVE, subject=subject)

    def bump_suppressed(self, alert_id: str) -> None:
        """Count a throttled duplicate against an existing alert."""
        with self._lock:
            alert = self._active.get(alert_id) or self._resolved.get(alert_id)
            if alert is None:
                logger.debug(f"Suppressed duplicate for unknown alert {alert_id}")
                return
            alert.suppressed_count += 1

    def record_action(self, alert_id: str, action: AlertAction) -> Alert:
        """Attach an action outcome to an alert.

        Raises:
            AlertNotFoundError: If the id is unknown
        """
        with self._lock:
            alert = self._find(alert_id)
            alert.actions.append(action)
            snapshot = alert.model_copy(deep=True)

        self._audit("log_action", snapshot, action)
        return snapshot

    def _move_to_resolved(self, alert: Alert, resolution: str) -> None:
        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = datetime.now(timezone.utc)
        alert.resolution = resolution
        del self._active[alert.alert_id]
        self._resolved[alert.alert_id] = alert
        while len(self._resolved) > self.max_resolved:
            self._resolved.popitem(last=False)

    def resolve(self, alert_id: str, resolution: str = "resolved") -> Alert:
        """Resolve an active alert.

        Raises:
            AlertNotFoundError: If the id is unknown
            AlertStateError: If the alert is already resolved
        """
        with self._lock:
            alert = self._find(alert_id)
            if not alert.is_active:
                raise AlertStateError(f"Alert '{alert_id}' is already resolved", alert_id)
            self._move_to_resolved(alert, resolution)
            snapshot = alert.model_copy(deep=True)

        logger.info(f"Alert resolved: {alert_id}", extra={"resolution": resolution})
        self._audit("log_alert_resolved", snapshot)
        return snapshot

    def mark_false_positive(self, alert_id: str, reason: str = "") -> Alert:
        """Flag an active alert as a false positive and resolve it.

        Raises:
            AlertNotFoundError: If the id is unknown
            AlertStateError: If the alert is already resolved
        """
        with self._lock:
            alert = self._find(alert_id)
            if not alert.is_active:
                raise AlertStateError(f"Alert '{alert_id}' is already resolved", alert_id)
            alert.false_positive = True
            self._move_to_resolved(alert, f"false positive: {reason}" if reason else "false positive")
            snapshot = alert.model_copy(deep=True)

        self.detection_stats.record_false_positive()
        logger.info(f"Alert marked as false positive: {alert_id}", extra={"reason": reason})
        self._audit("log_false_positive", snapshot, reason)
        return snapshot

    def stats(self) -> Dict[str, Any]:
        """Alert totals by type, severity, source address and subject."""
        with self._lock:
            alerts = list(self._active.values()) + list(self._resolved.values())
            active = len(self._active)

        return {
            "total": len(alerts),
            "active": active,
            "resolved": len(alerts) - active,
            "false_positives": sum(1 for a in alerts if a.false_positive),
            "by_type": dict(Counter(a.detection_type.value for a in alerts)),
            "by_severity": dict(Counter(a.severity.value for a in alerts)),
            "by_address": dict(Counter(a.source_address for a in alerts)),
            "by_subject": dict(Counter(a.subject for a in alerts)),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._active) + len(self._resolved)
