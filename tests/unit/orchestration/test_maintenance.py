"""Tests for the maintenance scheduler."""

from datetime import datetime, timedelta, timezone
import time

from shieldwatch.alerts.correlator import AlertCorrelator
from shieldwatch.core.types import DetectionType, LoginOutcome, Severity
from shieldwatch.data.schemas.alert import Detection
from shieldwatch.data.schemas.login_event import LoginEvent
from shieldwatch.models.behavior.store import BehaviorModelStore
from shieldwatch.orchestration.maintenance import MaintenanceScheduler


NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _seed(correlator: AlertCorrelator, store: BehaviorModelStore) -> None:
    correlator.correlate(Detection(
        detection_type=DetectionType.UNUSUAL_LOGIN_HOUR,
        severity=Severity.LOW,
        explanation="late login",
        subject="old@example.com",
        source_address="10.0.0.1",
        detected_at=NOW - timedelta(days=2),
    ))
    store.update(LoginEvent(
        subject="old@example.com",
        source_address="10.0.0.1",
        timestamp=NOW - timedelta(days=100),
        outcome=LoginOutcome.SUCCESS,
    ))
    store.update(LoginEvent(
        subject="new@example.com",
        source_address="10.0.0.2",
        timestamp=NOW - timedelta(days=1),
        outcome=LoginOutcome.SUCCESS,
    ))


class TestMaintenanceScheduler:
    """Tests for periodic housekeeping."""

    def test_run_once(self):
        correlator, store = AlertCorrelator(), BehaviorModelStore()
        _seed(correlator, store)
        scheduler = MaintenanceScheduler(correlator, store)

        assert scheduler.run_once(now=NOW) == {"swept_records": 1, "purged_models": 1}
        assert scheduler.last_run == NOW
        assert store.subjects() == ["new@example.com"]

    def test_run_once_is_idempotent(self):
        correlator, store = AlertCorrelator(), BehaviorModelStore()
        _seed(correlator, store)
        scheduler = MaintenanceScheduler(correlator, store)
        scheduler.run_once(now=NOW)

        assert scheduler.run_once(now=NOW) == {"swept_records": 0, "purged_models": 0}

    def test_background_loop(self):
        correlator, store = AlertCorrelator(), BehaviorModelStore()
        scheduler = MaintenanceScheduler(correlator, store, interval_seconds=0.01)

        scheduler.start()
        try:
            assert scheduler.is_running
            for _ in range(200):
                if scheduler.last_run is not None:
                    break
                time.sleep(0.01)
        finally:
            scheduler.stop()

        assert scheduler.last_run is not None
        assert not scheduler.is_running

    def test_stop_without_start(self):
        scheduler = MaintenanceScheduler(AlertCorrelator(), BehaviorModelStore())

        scheduler.stop()

        assert not scheduler.is_running

    def test_run_once_without_clock_uses_event_time(self):
        correlator, store = AlertCorrelator(), BehaviorModelStore()
        _seed(correlator, store)
        scheduler = MaintenanceScheduler(correlator, store)

        result = scheduler.run_once()

        # The lone throttle record is the newest one seen; the old model trails the new one by 99 days
        assert result == {"swept_records": 0, "purged_models": 1}
        assert store.subjects() == ["new@example.com"]
        assert scheduler.last_run is not None
