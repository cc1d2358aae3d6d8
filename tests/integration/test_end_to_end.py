"""Integration tests for ShieldWatch.

End-to-end tests that run login streams through the full pipeline:
behavior modeling, detection, throttling, response actions, audit.
"""

from datetime import datetime, timedelta, timezone

import pytest

from shieldwatch.common.config.rules import load_rules
from shieldwatch.common.config.settings import Config
from shieldwatch.core.types import ActionType, DetectionType, LoginOutcome, Severity
from shieldwatch.data.schemas.login_event import LoginEvent
from shieldwatch.detection.geo import StaticGeoLocator
from shieldwatch.governance.schemas import AuditEventType
from shieldwatch.orchestration.pipeline import create_pipeline
from shieldwatch.response.collaborators import InMemoryAuthService, InMemoryBlockList


BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)  # a Monday


def _login(
    subject: str,
    at: datetime,
    outcome: LoginOutcome = LoginOutcome.SUCCESS,
    address: str = "10.0.0.1",
    agent: str = "Mozilla/5.0 Firefox/121.0",
) -> LoginEvent:
    return LoginEvent(
        subject=subject,
        source_address=address,
        user_agent=agent,
        timestamp=at,
        outcome=outcome,
    )


class TestLoginStreamIntegration:
    """Integration tests for the login pipeline."""

    @pytest.fixture
    def block_list(self):
        return InMemoryBlockList()

    @pytest.fixture
    def auth(self):
        return InMemoryAuthService()

    @pytest.fixture
    def config(self, tmp_path):
        return Config(audit_log_dir=tmp_path / "audit")

    @pytest.fixture
    def pipeline(self, config, block_list, auth):
        pipeline = create_pipeline(
            rules=load_rules(config.resolved_rules_file),
            config=config,
            block_list=block_list,
            auth=auth,
            geo_locator=StaticGeoLocator({
                "10.0.0.0/8": {"latitude": 48.8566, "longitude": 2.3522, "city": "Paris"},
                "203.0.113.0/24": {"latitude": 40.7128, "longitude": -74.006, "city": "New York"},
            }),
        )
        yield pipeline
        pipeline.close()

    def test_cold_start_subject(self, pipeline):
        """A first login creates a model and raises nothing."""
        result = pipeline.ingest(_login("new@example.com", BASE_TIME))

        assert result.alerts == []
        assert result.suppressed == []
        assert pipeline.store.get("new@example.com").login_count == 1

    def test_brute_force_burst(self, pipeline, block_list):
        """Ten failures within a minute raise one brute-force alert."""
        alerts = []
        for i in range(10):
            result = pipeline.ingest(_login(
                "victim@example.com",
                BASE_TIME + timedelta(seconds=6 * i),
                LoginOutcome.FAILURE,
                address="198.51.100.23",
            ))
            alerts.extend(result.alerts)

        brute_force = [a for a in alerts if a.detection_type == DetectionType.BRUTE_FORCE_ATTEMPT]
        assert len(brute_force) == 1
        assert brute_force[0].severity == Severity.CRITICAL
        assert brute_force[0].actions[0].action_type == ActionType.BLOCK_ADDRESS
        assert "60 minutes" in brute_force[0].actions[0].details

        block = block_list.get_block("198.51.100.23")
        remaining = block.until - datetime.now(timezone.utc)
        assert timedelta(minutes=59) < remaining <= timedelta(minutes=60)

    def test_six_failures(self, pipeline, block_list):
        """The fifth failure alerts and blocks for 15 minutes, the sixth is throttled."""
        results = [
            pipeline.ingest(_login(
                "bob@example.com",
                BASE_TIME + timedelta(minutes=i),
                LoginOutcome.FAILURE,
                address="198.51.100.50",
            ))
            for i in range(6)
        ]

        raised = [a for r in results for a in r.alerts]
        assert len(raised) == 1
        assert results[4].alerts[0].severity == Severity.MEDIUM
        assert results[4].alerts[0].evidence["attempt_count"] == 5
        assert "15 minutes" in results[4].alerts[0].actions[0].details
        assert len(results[5].suppressed) == 1
        assert pipeline.alert_manager.get(raised[0].alert_id).suppressed_count == 1
        assert block_list.is_blocked("198.51.100.50")

    def test_throttle_expires(self, pipeline):
        """The same detection raises a new alert once the throttle window passed."""
        def burst(start):
            alerts = []
            for i in range(5):
                result = pipeline.ingest(_login(
                    "carol@example.com",
                    start + timedelta(seconds=30 * i),
                    LoginOutcome.FAILURE,
                ))
                alerts.extend(result.alerts)
            return alerts

        first = burst(BASE_TIME)
        second = burst(BASE_TIME + timedelta(hours=1))

        assert len(first) == 1
        assert len(second) == 1
        assert first[0].alert_id != second[0].alert_id

    def test_resolution_is_audited(self, pipeline):
        """Resolving removes the alert from the active set and writes the audit trail."""
        for i in range(5):
            pipeline.ingest(_login(
                "dave@example.com", BASE_TIME + timedelta(minutes=i), LoginOutcome.FAILURE
            ))
        alert = pipeline.alert_manager.active_alerts(subject="dave@example.com")[0]

        pipeline.alert_manager.resolve(alert.alert_id, "user reset password")

        assert pipeline.alert_manager.active_alerts(subject="dave@example.com") == []
        audit = pipeline.alert_manager.audit_logger
        history = [e.event_type for e in audit.get_alert_history(alert.alert_id)]
        assert history[0] == AuditEventType.ALERT_CREATED
        assert history[-1] == AuditEventType.ALERT_RESOLVED
        assert audit.verify_integrity() is True

    def test_impossible_travel(self, pipeline, auth):
        """A Paris login followed an hour later by a New York login."""
        pipeline.ingest(_login("erin@example.com", BASE_TIME, address="10.2.3.4"))

        result = pipeline.ingest(_login(
            "erin@example.com", BASE_TIME + timedelta(hours=1), address="203.0.113.80"
        ))

        location = [a for a in result.alerts if a.detection_type == DetectionType.UNUSUAL_LOCATION]
        assert len(location) == 1
        assert location[0].severity == Severity.HIGH
        assert auth.verification_required("erin@example.com") == "location"

    def test_simultaneous_sessions(self, pipeline, auth):
        """Two logins from different addresses minutes apart."""
        auth.open_session("frank@example.com", "10.0.0.7")
        auth.open_session("frank@example.com", "10.0.0.8")
        pipeline.ingest(_login("frank@example.com", BASE_TIME, address="10.0.0.7"))

        result = pipeline.ingest(_login(
            "frank@example.com", BASE_TIME + timedelta(minutes=2), address="10.0.0.8"
        ))

        types = {a.detection_type for a in result.alerts}
        assert DetectionType.SIMULTANEOUS_LOGINS in types
        assert auth.sessions("frank@example.com") == ["10.0.0.8"]

    def test_history_caps_hold_over_long_stream(self, pipeline):
        """A long stream never grows the bounded histories past their caps."""
        for i in range(150):
            outcome = LoginOutcome.FAILURE if i % 3 == 0 else LoginOutcome.SUCCESS
            pipeline.ingest(_login("grace@example.com", BASE_TIME + timedelta(hours=i), outcome))

        model = pipeline.store.get("grace@example.com")
        assert model.login_count == 100
        assert len(model.failed_attempts) == 50
        assert len(model.successful_logins) == 50

    def test_subjects_are_independent(self, pipeline):
        """Failures spread over two subjects do not add up."""
        for i in range(8):
            subject = "a@example.com" if i % 2 else "b@example.com"
            result = pipeline.ingest(_login(
                subject, BASE_TIME + timedelta(seconds=10 * i), LoginOutcome.FAILURE
            ))
            assert result.alerts == []
