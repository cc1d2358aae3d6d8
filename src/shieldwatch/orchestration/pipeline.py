"""Login Pipeline - end-to-end processing of one login event.

Flow:
1. Validate the event
2. Fold it into the subject's behavior model (under the subject lock)
3. Run the detector bank against the updated model
4. Correlate detections into alerts or suppressed duplicates
5. Register new alerts, dispatch actions, notify sinks

Only InvalidEventError escapes ingest(). Detector, action, sink and
storage failures are logged and absorbed by the stage that owns them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional, Union

from shieldwatch.alerts.correlator import AlertCorrelator
from shieldwatch.alerts.manager import AlertManager
from shieldwatch.common.config.rules import DetectionRules
from shieldwatch.common.config.settings import Config
from shieldwatch.common.exceptions import DetectorError
from shieldwatch.core.types import LoginOutcome, Severity
from shieldwatch.data.schemas.alert import Alert, Detection, Suppressed
from shieldwatch.data.schemas.login_event import LoginEvent, parse_login_event
from shieldwatch.detection.bank import DetectorBank
from shieldwatch.detection.geo import DistanceEstimator, GeoLocator
from shieldwatch.governance.audit.logger import AuditLogger
from shieldwatch.models.behavior.repository import FileModelRepository
from shieldwatch.models.behavior.store import BehaviorModelStore
from shieldwatch.notifications.siem import BackgroundSIEMWriter, SIEMExporter
from shieldwatch.notifications.sink import NotificationSink
from shieldwatch.response.collaborators import AuthClient, BlockListClient
from shieldwatch.response.dispatcher import ActionDispatcher

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """What one event produced."""
    event_id: str
    alerts: List[Alert] = field(default_factory=list)
    suppressed: List[Suppressed] = field(default_factory=list)
    detections: List[Detection] = field(default_factory=list)
    detector_errors: List[DetectorError] = field(default_factory=list)


class LoginPipeline:
    """Wires the store, detectors, correlator and alert handling together.

    All collaborators are injected; see create_pipeline() for the
    standard wiring.
    """

    def __init__(
        self,
        store: BehaviorModelStore,
        bank: DetectorBank,
        correlator: AlertCorrelator,
        alert_manager: AlertManager,
        dispatcher: Optional[ActionDispatcher] = None,
        sink: Optional[NotificationSink] = None,
    ):
        self.store = store
        self.bank = bank
        self.correlator = correlator
        self.alert_manager = alert_manager
        self.dispatcher = dispatcher
        self.sink = sink

        if self.correlator.on_suppressed is None:
            self.correlator.on_suppressed = self.alert_manager.bump_suppressed

    def ingest(self, event: Union[LoginEvent, Dict[str, Any]]) -> IngestResult:
        """Process one login event.

        Args:
            event: A LoginEvent or its raw mapping

        Returns:
            IngestResult with new alerts, suppressed duplicates and detections

        Raises:
            InvalidEventError: If the event is malformed
        """
        if not isinstance(event, LoginEvent):
            event = parse_login_event(event)

        with self.store.subject_lock(event.subject):
            model = self.store.update(event)
            bank_result = self.bank.run(event, model)

        result = IngestResult(
            event_id=event.event_id,
            detections=bank_result.detections,
            detector_errors=bank_result.errors,
        )

        for detection in bank_result.detections:
            self.alert_manager.detection_stats.record(detection)
            outcome = self.correlator.correlate(detection)
            if isinstance(outcome, Suppressed):
                result.suppressed.append(outcome)
                continue
            result.alerts.append(self._handle_new_alert(outcome, event))

        if result.alerts or result.suppressed:
            logger.info(
                f"Event {event.event_id} for {event.subject}: "
                f"{len(result.alerts)} alerts, {len(result.suppressed)} suppressed"
            )
        return result

    def _handle_new_alert(self, alert: Alert, event: LoginEvent) -> Alert:
        alert = self.alert_manager.register(alert)

        if self.dispatcher is not None:
            try:
                action_results = self.dispatcher.dispatch(alert, event)
            except Exception as e:
                logger.error(
                    f"Action dispatch aborted for alert {alert.alert_id}: {type(e).__name__}: {e}"
                )
                action_results = []
            for action_result in action_results:
                alert = self.alert_manager.record_action(
                    alert.alert_id, action_result.to_alert_action()
                )

        if self.sink is not None:
            self.sink.notify(alert)
        return alert

    def subject_report(self, subject: str) -> Dict[str, Any]:
        """Security summary for one subject.

        Login statistics cover the retained login history.
        """
        model = self.store.snapshot(subject)
        active_alerts = self.alert_manager.active_alerts(subject=subject)
        highest = Severity.highest(a.severity for a in active_alerts)

        total = successful = failed = 0
        last_success = None
        devices = addresses = 0
        if model is not None:
            total = model.login_count
            successful = sum(1 for r in model.login_times if r.outcome == LoginOutcome.SUCCESS)
            failed = total - successful
            devices = len(model.devices)
            addresses = len(model.addresses)
            if model.successful_logins:
                latest = max(model.successful_logins, key=lambda a: a.timestamp)
                last_success = {
                    "timestamp": latest.timestamp,
                    "source_address": latest.source_address,
                    "user_agent": latest.user_agent,
                }

        return {
            "subject": subject,
            "report_date": datetime.now(timezone.utc),
            "known_subject": model is not None,
            "statistics": {
                "total_logins": total,
                "successful_logins": successful,
                "failed_logins": failed,
                "success_rate": round(successful / total * 100, 2) if total else None,
                "distinct_devices": devices,
                "distinct_addresses": addresses,
            },
            "last_successful_login": last_success,
            "active_alerts": active_alerts,
            "risk_level": highest.value if highest else "none",
        }

    def close(self) -> None:
        if self.sink is not None:
            self.sink.close()
        self.bank.distance_estimator.shutdown()


def create_pipeline(
    rules: Optional[DetectionRules] = None,
    config: Optional[Config] = None,
    block_list: Optional[BlockListClient] = None,
    auth: Optional[AuthClient] = None,
    siem_exporter: Optional[SIEMExporter] = None,
    geo_locator: Optional[GeoLocator] = None,
) -> LoginPipeline:
    """Build a pipeline with the standard wiring.

    Persistence and auditing are enabled when the config names a model
    store directory and an audit log directory.
    """
    rules = rules or DetectionRules()
    config = config or Config()

    repository = None
    if config.model_store_dir is not None:
        repository = FileModelRepository(config.model_store_dir)
    store = BehaviorModelStore(repository=repository)
    store.load()

    audit_logger = AuditLogger(config.audit_log_dir) if config.audit_log_dir else None
    alert_manager = AlertManager(audit_logger=audit_logger)

    bank = DetectorBank(
        rules=rules,
        distance_estimator=DistanceEstimator(
            locator=geo_locator,
            timeout_seconds=rules.unusual_locations.lookup_timeout_seconds,
        ),
    )
    dispatcher = ActionDispatcher(
        block_list=block_list,
        auth=auth,
        rules=rules,
        timeout_seconds=config.action_timeout_seconds,
    )
    siem_writer = BackgroundSIEMWriter(siem_exporter) if siem_exporter is not None else None

    return LoginPipeline(
        store=store,
        bank=bank,
        correlator=AlertCorrelator(rules=rules),
        alert_manager=alert_manager,
        dispatcher=dispatcher,
        sink=NotificationSink(rules=rules, siem_writer=siem_writer),
    )
