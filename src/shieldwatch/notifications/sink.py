"""Notification Sink - fans new alerts out to log, dashboard and SIEM.

Every alert is delivered at most once. Sink failures are logged and
never propagate to the caller.
"""

from collections import OrderedDict
import logging
import threading
from typing import Callable, List, Optional

from shieldwatch.common.config.rules import DetectionRules
from shieldwatch.core.types import Severity
from shieldwatch.data.schemas.alert import Alert
from shieldwatch.notifications.siem import BackgroundSIEMWriter

logger = logging.getLogger(__name__)


DashboardCallback = Callable[[Alert], None]

_LOG_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}


class NotificationSink:
    """Delivers alerts to the configured channels."""

    DEFAULT_MAX_REMEMBERED = 10000

    def __init__(
        self,
        rules: Optional[DetectionRules] = None,
        siem_writer: Optional[BackgroundSIEMWriter] = None,
        max_remembered: int = DEFAULT_MAX_REMEMBERED,
    ):
        """Initialize the sink.

        Args:
            rules: Detection rules (channel switches, SIEM severity floor)
            siem_writer: Background SIEM writer. SIEM export is off without it.
            max_remembered: Alert ids remembered for once-only delivery
        """
        self.rules = rules or DetectionRules()
        self.siem_writer = siem_writer
        self.max_remembered = max_remembered

        self._subscribers: List[DashboardCallback] = []
        self._notified: "OrderedDict[str, None]" = OrderedDict()
        self._lock = threading.Lock()

    def subscribe(self, callback: DashboardCallback) -> Callable[[], None]:
        """Register a dashboard subscriber.

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, alert: Alert) -> bool:
        """Deliver an alert to every enabled channel.

        Returns:
            False if the alert was already delivered
        """
        with self._lock:
            if alert.alert_id in self._notified:
                return False
            self._notified[alert.alert_id] = None
            while len(self._notified) > self.max_remembered:
                self._notified.popitem(last=False)
            subscribers = list(self._subscribers)

        cfg = self.rules.notifications

        if cfg.log_alerts:
            logger.log(
                _LOG_LEVELS.get(alert.severity, logging.WARNING),
                f"[{alert.severity.value.upper()}] {alert.detection_type.value}: {alert.explanation}",
                extra={
                    "alert_id": alert.alert_id,
                    "subject": alert.subject,
                    "source_address": alert.source_address,
                },
            )

        if cfg.dashboard:
            for callback in subscribers:
                try:
                    callback(alert)
                except Exception as e:
                    logger.error(
                        f"Dashboard subscriber failed for alert {alert.alert_id}: "
                        f"{type(e).__name__}: {e}"
                    )

        if (
            cfg.siem_enabled
            and self.siem_writer is not None
            and alert.severity.at_least(cfg.siem_min_severity)
        ):
            self.siem_writer.submit(alert)

        return True

    def close(self) -> None:
        if self.siem_writer is not None:
            self.siem_writer.shutdown()
