"""Alert Service - business logic behind the HTTP API.

Translates API schemas to domain calls on the login pipeline and back.
Domain errors (InvalidEventError, AlertNotFoundError, AlertStateError)
propagate to the gateway, which maps them to status codes.
"""

from datetime import datetime
import logging
from typing import Optional

from shieldwatch.api.schemas import (
    AlertListResponse,
    AlertStatsResponse,
    AlertSummary,
    DetectionStatsResponse,
    FalsePositiveRequest,
    IngestResponse,
    LoginEventRequest,
    ResolveAlertRequest,
    SubjectReportResponse,
)
from shieldwatch.common.config.rules import DetectionRules, load_rules
from shieldwatch.common.config.settings import Config, get_config
from shieldwatch.core.types import AlertStatus, DetectionType, Severity
from shieldwatch.data.schemas.alert import Alert
from shieldwatch.data.schemas.login_event import parse_login_event
from shieldwatch.notifications.siem import S3SIEMExporter
from shieldwatch.orchestration.maintenance import MaintenanceScheduler
from shieldwatch.orchestration.pipeline import LoginPipeline, create_pipeline
from shieldwatch.response.collaborators import InMemoryAuthService, InMemoryBlockList

logger = logging.getLogger(__name__)


class AlertService:
    """Service backing the ShieldWatch API.

    Owns:
    1. The login pipeline (store, detectors, correlator, alerts, actions, sinks)
    2. The maintenance scheduler

    Without injected collaborators the service runs with the in-memory
    block list and auth service, which suits local development.
    """

    def __init__(
        self,
        pipeline: Optional[LoginPipeline] = None,
        config: Optional[Config] = None,
        rules: Optional[DetectionRules] = None,
    ):
        """Initialize the service.

        Args:
            pipeline: Login pipeline. Built from config and rules if not provided.
            config: Runtime configuration. Uses the global config if not provided.
            rules: Detection rules. Loaded from the rules file if not provided.
        """
        self.config = config or get_config()

        if pipeline is None:
            rules = rules or load_rules(self.config.resolved_rules_file)
            siem_exporter = None
            if self.config.siem_s3_bucket:
                siem_exporter = S3SIEMExporter(
                    bucket_name=self.config.siem_s3_bucket,
                    environment=self.config.environment.value,
                    region=self.config.aws_region,
                )
            pipeline = create_pipeline(
                rules=rules,
                config=self.config,
                block_list=InMemoryBlockList(),
                auth=InMemoryAuthService(),
                siem_exporter=siem_exporter,
            )

        self.pipeline = pipeline
        self.scheduler = MaintenanceScheduler(
            correlator=pipeline.correlator,
            store=pipeline.store,
            interval_seconds=self.config.maintenance_interval_seconds,
        )

    def start(self) -> None:
        self.scheduler.start()

    def shutdown(self) -> None:
        """Stop maintenance and flush pending SIEM exports."""
        self.scheduler.stop()
        self.pipeline.close()
        logger.info("AlertService shutdown complete")

    def ingest(self, request: LoginEventRequest) -> IngestResponse:
        """Process a login event.

        Raises:
            InvalidEventError: If the event is rejected by the domain schema
        """
        event = parse_login_event(request.model_dump(exclude_none=True))
        result = self.pipeline.ingest(event)
        return IngestResponse(
            event_id=result.event_id,
            alerts=[AlertSummary.from_alert(a) for a in result.alerts],
            suppressed=len(result.suppressed),
        )

    def list_alerts(
        self,
        status: Optional[AlertStatus] = None,
        severity: Optional[Severity] = None,
        detection_type: Optional[DetectionType] = None,
        since: Optional[datetime] = None,
        subject: Optional[str] = None,
    ) -> AlertListResponse:
        alerts = self.pipeline.alert_manager.query(
            status=status,
            severity=severity,
            detection_type=detection_type,
            since=since,
            subject=subject,
        )
        return AlertListResponse(alerts=alerts, count=len(alerts))

    def get_alert(self, alert_id: str) -> Alert:
        return self.pipeline.alert_manager.get(alert_id)

    def resolve_alert(self, alert_id: str, request: ResolveAlertRequest) -> Alert:
        return self.pipeline.alert_manager.resolve(alert_id, request.resolution)

    def mark_false_positive(self, alert_id: str, request: FalsePositiveRequest) -> Alert:
        return self.pipeline.alert_manager.mark_false_positive(alert_id, request.reason)

    def alert_stats(self) -> AlertStatsResponse:
        return AlertStatsResponse(**self.pipeline.alert_manager.stats())

    def detection_stats(self) -> DetectionStatsResponse:
        return DetectionStatsResponse(**self.pipeline.alert_manager.detection_stats.snapshot())

    def subject_report(self, subject: str) -> SubjectReportResponse:
        return SubjectReportResponse.model_validate(self.pipeline.subject_report(subject))
