"""Tests for the login pipeline."""

from datetime import datetime, timedelta, timezone
import threading
from unittest.mock import MagicMock

import pytest

from shieldwatch.alerts.correlator import AlertCorrelator
from shieldwatch.alerts.manager import AlertManager
from shieldwatch.common.config.settings import Config
from shieldwatch.common.exceptions import InvalidEventError
from shieldwatch.core.types import ActionStatus, ActionType, DetectionType, LoginOutcome, Severity
from shieldwatch.data.schemas.login_event import LoginEvent
from shieldwatch.detection.bank import DetectorBank, RegisteredDetector
from shieldwatch.models.behavior.store import BehaviorModelStore
from shieldwatch.notifications.siem import InMemorySIEMExporter
from shieldwatch.notifications.sink import NotificationSink
from shieldwatch.orchestration.maintenance import MaintenanceScheduler
from shieldwatch.orchestration.pipeline import LoginPipeline, create_pipeline
from shieldwatch.response.collaborators import InMemoryAuthService, InMemoryBlockList
from shieldwatch.response.dispatcher import ActionDispatcher


BASE_TIME = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def _failure(i: int, subject: str = "bob@example.com") -> dict:
    return {
        "subject": subject,
        "source_address": "198.51.100.1",
        "user_agent": "python-requests/2.31",
        "timestamp": (BASE_TIME + timedelta(seconds=5 * i)).isoformat(),
        "outcome": "failure",
    }


@pytest.fixture
def block_list():
    return InMemoryBlockList()


@pytest.fixture
def pipeline(block_list):
    pipeline = create_pipeline(
        config=Config(),
        block_list=block_list,
        auth=InMemoryAuthService(),
    )
    yield pipeline
    pipeline.close()


class TestIngest:
    """Tests for processing events end to end."""

    def test_accepts_raw_mapping(self, pipeline):
        result = pipeline.ingest(_failure(0))

        assert result.event_id.startswith("evt_")
        assert result.alerts == []
        assert "bob@example.com" in pipeline.store

    def test_invalid_event_is_rejected(self, pipeline):
        with pytest.raises(InvalidEventError):
            pipeline.ingest({"subject": "bob@example.com", "outcome": "failure"})

        assert len(pipeline.store) == 0

    def test_fifth_failure_raises_alert_and_blocks(self, pipeline, block_list):
        results = [pipeline.ingest(_failure(i)) for i in range(5)]

        alerts = results[-1].alerts
        assert [a.detection_type for a in alerts] == [DetectionType.MULTIPLE_FAILED_ATTEMPTS]
        assert alerts[0].severity == Severity.MEDIUM
        assert alerts[0].actions[0].action_type == ActionType.BLOCK_ADDRESS
        assert alerts[0].actions[0].status == ActionStatus.SUCCEEDED
        assert block_list.is_blocked("198.51.100.1")

    def test_repeat_detection_is_suppressed(self, pipeline):
        for i in range(5):
            pipeline.ingest(_failure(i))

        result = pipeline.ingest(_failure(5))

        assert result.alerts == []
        assert len(result.suppressed) == 1
        alert_id = result.suppressed[0].alert_id
        assert pipeline.alert_manager.get(alert_id).suppressed_count == 1

    def test_detection_stats_include_suppressed(self, pipeline):
        for i in range(6):
            pipeline.ingest(_failure(i))

        stats = pipeline.alert_manager.detection_stats.snapshot()

        assert stats["by_type"] == {"multiple_failed_attempts": 2}

    def test_detector_error_is_reported(self):
        def broken(event, model, rules):
            raise ValueError("bad model")

        bank = DetectorBank(extra_detectors=[
            RegisteredDetector(DetectionType.BEHAVIOR_CHANGE, broken, lambda r: True)
        ])
        pipeline = LoginPipeline(
            store=BehaviorModelStore(),
            bank=bank,
            correlator=AlertCorrelator(),
            alert_manager=AlertManager(),
        )

        result = pipeline.ingest(_failure(0))

        assert len(result.detector_errors) == 1
        assert result.alerts == []

    def test_dispatch_failure_keeps_alert(self):
        dispatcher = MagicMock(spec=ActionDispatcher)
        dispatcher.dispatch.side_effect = RuntimeError("executor gone")
        sink = MagicMock(spec=NotificationSink)
        manager = AlertManager()
        pipeline = LoginPipeline(
            store=BehaviorModelStore(),
            bank=DetectorBank(),
            correlator=AlertCorrelator(),
            alert_manager=manager,
            dispatcher=dispatcher,
            sink=sink,
        )

        results = [pipeline.ingest(_failure(i)) for i in range(5)]

        assert len(results[-1].alerts) == 1
        assert results[-1].alerts[0].actions == []
        assert len(manager.active_alerts()) == 1
        sink.notify.assert_called_once()

    def test_sink_receives_alert(self):
        exporter = InMemorySIEMExporter()
        pipeline = create_pipeline(config=Config(), siem_exporter=exporter)
        received = []
        pipeline.sink.subscribe(received.append)

        try:
            for i in range(5):
                pipeline.ingest(_failure(i))
            pipeline.sink.siem_writer.flush(timeout=5.0)
        finally:
            pipeline.close()

        assert len(received) == 1
        assert [a.alert_id for a in exporter.exported] == [received[0].alert_id]


class TestSubjectReport:
    """Tests for the per-subject summary."""

    def test_unknown_subject(self, pipeline):
        report = pipeline.subject_report("nobody@example.com")

        assert report["known_subject"] is False
        assert report["statistics"]["total_logins"] == 0
        assert report["statistics"]["success_rate"] is None
        assert report["last_successful_login"] is None
        assert report["risk_level"] == "none"
        assert "nobody@example.com" not in pipeline.store._subject_locks

    def test_report_statistics(self, pipeline):
        pipeline.ingest(LoginEvent(
            subject="bob@example.com",
            source_address="10.0.0.1",
            user_agent="Firefox",
            timestamp=BASE_TIME - timedelta(hours=1),
            outcome=LoginOutcome.SUCCESS,
        ))
        for i in range(5):
            pipeline.ingest(_failure(i))

        report = pipeline.subject_report("bob@example.com")

        stats = report["statistics"]
        assert stats["total_logins"] == 6
        assert stats["successful_logins"] == 1
        assert stats["failed_logins"] == 5
        assert stats["success_rate"] == pytest.approx(16.67)
        assert stats["distinct_devices"] == 2
        assert stats["distinct_addresses"] == 2
        assert report["last_successful_login"]["source_address"] == "10.0.0.1"
        assert len(report["active_alerts"]) == 1
        assert report["risk_level"] == "medium"


class TestConcurrentIngest:
    """Tests for ingesting from several threads at once."""

    def test_one_subject_is_serialized(self, pipeline):
        barrier = threading.Barrier(8)
        results = []

        def worker():
            barrier.wait(timeout=5)
            results.append(pipeline.ingest(_failure(0)))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(results) == 8
        assert len(pipeline.store.get("bob@example.com").failed_attempts) == 8
        alerts = pipeline.alert_manager.query(detection_type=DetectionType.MULTIPLE_FAILED_ATTEMPTS)
        assert len(alerts) == 1
        assert alerts[0].suppressed_count == 3
        assert sum(len(r.suppressed) for r in results) == 3

    def test_subjects_proceed_independently(self, pipeline):
        alice = threading.Thread(target=pipeline.ingest, args=(_failure(0, subject="alice@example.com"),))
        bob = threading.Thread(target=pipeline.ingest, args=(_failure(0, subject="bob@example.com"),))

        with pipeline.store.subject_lock("alice@example.com"):
            alice.start()
            bob.start()
            bob.join(timeout=5)
            assert not bob.is_alive()
            alice.join(timeout=0.2)
            assert alice.is_alive()
            assert "alice@example.com" not in pipeline.store

        alice.join(timeout=5)
        assert not alice.is_alive()
        assert "alice@example.com" in pipeline.store


class TestMaintenanceBetweenEvents:
    """Tests for housekeeping running between back-dated events."""

    def test_throttle_survives_maintenance_pass(self, pipeline):
        for i in range(5):
            pipeline.ingest(_failure(i))
        scheduler = MaintenanceScheduler(pipeline.correlator, pipeline.store)

        scheduler.run_once()
        result = pipeline.ingest(_failure(12))

        assert result.alerts == []
        assert len(result.suppressed) == 1
        assert len(pipeline.alert_manager.query()) == 1
        assert "bob@example.com" in pipeline.store


class TestCreatePipeline:
    """Tests for the standard wiring."""

    def test_persists_models_and_audit(self, tmp_path):
        config = Config(model_store_dir=tmp_path / "models", audit_log_dir=tmp_path / "audit")
        pipeline = create_pipeline(config=config)
        try:
            for i in range(5):
                pipeline.ingest(_failure(i))
        finally:
            pipeline.close()

        assert list((tmp_path / "models").glob("*.json"))
        assert pipeline.alert_manager.audit_logger.get_entry_count() >= 2

        restored = create_pipeline(config=config)
        try:
            assert restored.store.get("bob@example.com").login_count == 5
        finally:
            restored.close()
