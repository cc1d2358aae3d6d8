"""Tests for protective action dispatch."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
import threading

import pytest

from shieldwatch.common.config.rules import parse_rules
from shieldwatch.core.types import (
    ActionStatus,
    ActionType,
    DetectionType,
    LoginOutcome,
    Severity,
)
from shieldwatch.data.schemas.alert import Alert
from shieldwatch.data.schemas.login_event import LoginEvent
from shieldwatch.response.collaborators import (
    BlockListClient,
    InMemoryAuthService,
    InMemoryBlockList,
)
from shieldwatch.response.dispatcher import ActionDispatcher, progressive_block_minutes


BASE_TIME = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def _event(address: str = "198.51.100.1") -> LoginEvent:
    return LoginEvent(
        subject="alice@example.com",
        source_address=address,
        timestamp=BASE_TIME,
        outcome=LoginOutcome.FAILURE,
    )


def _alert(detection_type: DetectionType, severity: Severity, **evidence) -> Alert:
    return Alert(
        detection_type=detection_type,
        severity=severity,
        explanation="test alert",
        evidence=evidence,
        subject="alice@example.com",
        source_address="198.51.100.1",
        detected_at=BASE_TIME,
    )


class HangingBlockList(BlockListClient):
    def __init__(self):
        self.release = threading.Event()

    def block_address(self, address, minutes, reason):
        self.release.wait(2.0)


class FailingBlockList(BlockListClient):
    def block_address(self, address, minutes, reason):
        raise ConnectionError("firewall API unreachable")


@pytest.fixture
def executor():
    executor = ThreadPoolExecutor(max_workers=4)
    yield executor
    executor.shutdown(wait=False, cancel_futures=True)


@pytest.fixture
def block_list():
    return InMemoryBlockList()


@pytest.fixture
def auth():
    return InMemoryAuthService()


@pytest.fixture
def dispatcher(block_list, auth, executor):
    return ActionDispatcher(block_list=block_list, auth=auth, executor=executor)


class TestProgressiveBlocking:
    """Tests for the progressive block duration."""

    @pytest.mark.parametrize("count,minutes", [
        (5, 15),
        (6, 23),
        (7, 34),
        (8, 51),
        (9, 76),
        (10, 114),
        (11, 120),
        (20, 120),
    ])
    def test_duration_by_count(self, count, minutes):
        assert progressive_block_minutes(count) == minutes

    def test_custom_threshold(self):
        assert progressive_block_minutes(3, threshold=3) == 15


class TestPlan:
    """Tests for selecting actions."""

    def test_brute_force_blocks_for_rule_duration(self, dispatcher):
        alert = _alert(
            DetectionType.BRUTE_FORCE_ATTEMPT, Severity.CRITICAL, block_duration_minutes=60
        )

        planned = dispatcher.plan(alert, _event())

        assert [p.action_type for p in planned] == [ActionType.BLOCK_ADDRESS]
        assert planned[0].params["minutes"] == 60

    def test_failed_attempts_progressive_block(self, dispatcher):
        alert = _alert(DetectionType.MULTIPLE_FAILED_ATTEMPTS, Severity.HIGH, attempt_count=8)

        planned = dispatcher.plan(alert, _event())

        assert [p.action_type for p in planned] == [ActionType.BLOCK_ADDRESS]
        assert planned[0].params["minutes"] == 51

    def test_critical_failed_attempts_locks_account(self, dispatcher):
        alert = _alert(DetectionType.MULTIPLE_FAILED_ATTEMPTS, Severity.CRITICAL, attempt_count=10)

        planned = dispatcher.plan(alert, _event())

        assert [p.action_type for p in planned] == [
            ActionType.BLOCK_ADDRESS,
            ActionType.LOCK_ACCOUNT,
        ]
        assert planned[1].params["minutes"] == 30

    def test_blocking_disabled(self, block_list, auth):
        rules = parse_rules({
            "response": {"block_suspicious_addresses": False, "lock_accounts": False}
        })
        dispatcher = ActionDispatcher(block_list=block_list, auth=auth, rules=rules)

        planned = dispatcher.plan(
            _alert(DetectionType.MULTIPLE_FAILED_ATTEMPTS, Severity.CRITICAL, attempt_count=10),
            _event(),
        )

        assert planned == []

    def test_simultaneous_logins_invalidate_other_sessions(self, dispatcher):
        planned = dispatcher.plan(
            _alert(DetectionType.SIMULTANEOUS_LOGINS, Severity.HIGH), _event("10.0.0.2")
        )

        assert [p.action_type for p in planned] == [ActionType.INVALIDATE_SESSIONS]
        assert planned[0].params["except_address"] == "10.0.0.2"

    def test_unusual_location_requires_verification(self, dispatcher):
        planned = dispatcher.plan(_alert(DetectionType.UNUSUAL_LOCATION, Severity.HIGH), _event())

        assert [p.action_type for p in planned] == [ActionType.REQUIRE_VERIFICATION]

    @pytest.mark.parametrize("detection_type,severity", [
        (DetectionType.UNUSUAL_LOCATION, Severity.MEDIUM),
        (DetectionType.SIMULTANEOUS_LOGINS, Severity.MEDIUM),
        (DetectionType.UNUSUAL_LOGIN_HOUR, Severity.MEDIUM),
        (DetectionType.MULTI_DEVICE_LOGIN, Severity.HIGH),
        (DetectionType.BEHAVIOR_CHANGE, Severity.HIGH),
    ])
    def test_no_action(self, dispatcher, detection_type, severity):
        assert dispatcher.plan(_alert(detection_type, severity), _event()) == []


class TestDispatch:
    """Tests for executing actions."""

    def test_block_and_lock_succeed(self, dispatcher, block_list, auth):
        alert = _alert(DetectionType.MULTIPLE_FAILED_ATTEMPTS, Severity.CRITICAL, attempt_count=10)

        results = dispatcher.dispatch(alert, _event())

        assert [r.status for r in results] == [ActionStatus.SUCCEEDED, ActionStatus.SUCCEEDED]
        assert block_list.is_blocked("198.51.100.1")
        assert auth.is_account_locked("alice@example.com")

    def test_sessions_invalidated_except_current(self, dispatcher, auth):
        auth.open_session("alice@example.com", "10.0.0.1")
        auth.open_session("alice@example.com", "10.0.0.2")

        dispatcher.dispatch(
            _alert(DetectionType.SIMULTANEOUS_LOGINS, Severity.HIGH), _event("10.0.0.2")
        )

        assert auth.sessions("alice@example.com") == ["10.0.0.2"]

    def test_verification_required(self, dispatcher, auth):
        dispatcher.dispatch(_alert(DetectionType.UNUSUAL_LOCATION, Severity.HIGH), _event())

        assert auth.verification_required("alice@example.com") == "location"

    def test_missing_collaborator_is_skipped(self, executor):
        dispatcher = ActionDispatcher(executor=executor)

        results = dispatcher.dispatch(
            _alert(DetectionType.BRUTE_FORCE_ATTEMPT, Severity.CRITICAL), _event()
        )

        assert [r.status for r in results] == [ActionStatus.SKIPPED]

    def test_timeout_is_reported(self, executor):
        block_list = HangingBlockList()
        dispatcher = ActionDispatcher(block_list=block_list, timeout_seconds=0.05, executor=executor)

        try:
            results = dispatcher.dispatch(
                _alert(DetectionType.BRUTE_FORCE_ATTEMPT, Severity.CRITICAL), _event()
            )
        finally:
            block_list.release.set()

        assert results[0].status == ActionStatus.FAILED
        assert results[0].error.code == "ACTION_DISPATCH_ERROR"
        assert "Timed out" in results[0].error.message
        assert results[0].to_alert_action().error.startswith("Timed out")

    def test_failure_does_not_stop_other_actions(self, auth, executor):
        dispatcher = ActionDispatcher(block_list=FailingBlockList(), auth=auth, executor=executor)
        alert = _alert(DetectionType.MULTIPLE_FAILED_ATTEMPTS, Severity.CRITICAL, attempt_count=10)

        results = dispatcher.dispatch(alert, _event())

        assert [r.status for r in results] == [ActionStatus.FAILED, ActionStatus.SUCCEEDED]
        assert "ConnectionError" in results[0].error.message
        assert results[0].error.details["action_type"] == "block_address"
        assert auth.is_account_locked("alice@example.com")

    def test_nothing_to_do(self, dispatcher):
        assert dispatcher.dispatch(
            _alert(DetectionType.UNUSUAL_LOGIN_HOUR, Severity.LOW), _event()
        ) == []


class TestInMemoryBlockList:
    """Tests for the in-memory block list."""

    def test_reblock_keeps_later_expiry(self, block_list):
        block_list.block_address("198.51.100.1", 60, "brute force")
        first_until = block_list.get_block("198.51.100.1").until

        block_list.block_address("198.51.100.1", 15, "failed attempts")

        assert block_list.get_block("198.51.100.1").until == first_until
        assert block_list.blocked_addresses() == ["198.51.100.1"]
