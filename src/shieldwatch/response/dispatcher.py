"""Action Dispatcher - protective side effects for new alerts.

Execution model:
1. Plan the actions the alert calls for (may be none)
2. Submit every action to the shared executor
3. Collect each outcome under the action timeout

A failing or slow collaborator never affects the other actions or the
alert itself: the failure is logged and returned as a failed result.
"""

import atexit
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from functools import partial
import logging
import math
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from shieldwatch.common.config.rules import DetectionRules
from shieldwatch.common.constants import ResponseConstants
from shieldwatch.common.exceptions import ActionDispatchError
from shieldwatch.core.types import ActionStatus, ActionType, DetectionType, Severity
from shieldwatch.data.schemas.alert import Alert, AlertAction
from shieldwatch.data.schemas.login_event import LoginEvent
from shieldwatch.response.collaborators import AuthClient, BlockListClient

logger = logging.getLogger(__name__)


def progressive_block_minutes(
    count: int,
    base_minutes: float = ResponseConstants.PROGRESSIVE_BASE_MINUTES,
    factor: float = ResponseConstants.PROGRESSIVE_FACTOR,
    cap_minutes: float = ResponseConstants.PROGRESSIVE_CAP_MINUTES,
    threshold: int = 5,
) -> int:
    """Block duration for a failed-attempt count.

    Grows geometrically from base_minutes at the threshold and is capped.
    Halves round up: 8 failures -> 50.625 -> 51.

    >>> progressive_block_minutes(5), progressive_block_minutes(8), progressive_block_minutes(20)
    (15, 51, 120)
    """
    minutes = min(base_minutes * factor ** (count - threshold), cap_minutes)
    return int(math.floor(minutes + 0.5))


@dataclass
class ActionResult:
    """Outcome of one dispatched action."""
    action_type: ActionType
    status: ActionStatus
    details: str = ""
    error: Optional[ActionDispatchError] = None

    def to_alert_action(self) -> AlertAction:
        return AlertAction(
            action_type=self.action_type,
            status=self.status,
            details=self.details,
            error=self.error.message if self.error else None,
        )


@dataclass
class PlannedAction:
    """An action selected for an alert, not yet executed."""
    action_type: ActionType
    details: str
    call: Optional[Callable[[], Any]] = None
    params: Dict[str, Any] = field(default_factory=dict)


# Module-level shared executor
_shared_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def _get_shared_executor(max_workers: int = ResponseConstants.EXECUTOR_MAX_WORKERS) -> ThreadPoolExecutor:
    """Get or create the shared thread pool executor."""
    global _shared_executor

    with _executor_lock:
        if _shared_executor is None:
            _shared_executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="ActionWorker"
            )
            atexit.register(_shutdown_shared_executor)
            logger.info(f"Created shared action executor with {max_workers} workers")

    return _shared_executor


def _shutdown_shared_executor() -> None:
    global _shared_executor
    if _shared_executor is not None:
        _shared_executor.shutdown(wait=False, cancel_futures=True)
        _shared_executor = None


class ActionDispatcher:
    """Maps alerts to collaborator calls and runs them with timeouts.

    Features:
    - Injectable collaborators; a missing one yields a skipped result
    - Shared thread pool executor
    - Structured error collection
    """

    def __init__(
        self,
        block_list: Optional[BlockListClient] = None,
        auth: Optional[AuthClient] = None,
        rules: Optional[DetectionRules] = None,
        timeout_seconds: float = ResponseConstants.ACTION_TIMEOUT_SECONDS,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """Initialize dispatcher.

        Args:
            block_list: Address block list. Block actions are skipped without it.
            auth: Authentication layer. Session and account actions are skipped without it.
            rules: Detection rules (block durations, response switches)
            timeout_seconds: Per-action timeout
            executor: Custom executor. Uses the shared executor if not provided.
        """
        self.block_list = block_list
        self.auth = auth
        self.rules = rules or DetectionRules()
        self.timeout_seconds = timeout_seconds
        self._executor = executor

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is not None:
            return self._executor
        return _get_shared_executor()

    def _auth_call(self, method: str, *args, **kwargs) -> Optional[Callable[[], Any]]:
        if self.auth is None:
            return None
        return partial(getattr(self.auth, method), *args, **kwargs)

    def _block(self, address: str, minutes: int, reason: str) -> PlannedAction:
        return PlannedAction(
            action_type=ActionType.BLOCK_ADDRESS,
            details=f"Blocked {address} for {minutes} minutes",
            call=partial(self.block_list.block_address, address, minutes, reason)
            if self.block_list is not None else None,
            params={"address": address, "minutes": minutes, "reason": reason},
        )

    def plan(self, alert: Alert, event: LoginEvent) -> List[PlannedAction]:
        """Select the actions an alert calls for."""
        response = self.rules.response
        address = event.source_address
        subject = alert.subject
        planned: List[PlannedAction] = []

        if alert.detection_type == DetectionType.BRUTE_FORCE_ATTEMPT:
            if response.block_suspicious_addresses:
                minutes = alert.evidence.get(
                    "block_duration_minutes", self.rules.brute_force.block_duration_minutes
                )
                planned.append(self._block(address, minutes, "Brute force attempt"))

        elif alert.detection_type == DetectionType.MULTIPLE_FAILED_ATTEMPTS:
            count = int(alert.evidence.get("attempt_count", self.rules.failed_attempts.threshold))
            if response.block_suspicious_addresses and self.rules.failed_attempts.progressive_blocking:
                minutes = progressive_block_minutes(
                    count,
                    base_minutes=response.progressive_base_minutes,
                    factor=response.progressive_factor,
                    cap_minutes=response.progressive_cap_minutes,
                    threshold=self.rules.failed_attempts.threshold,
                )
                planned.append(self._block(address, minutes, f"{count} failed login attempts"))

            if response.lock_accounts and alert.severity == Severity.CRITICAL:
                minutes = response.account_lock_minutes
                reason = f"{count} failed login attempts"
                planned.append(PlannedAction(
                    action_type=ActionType.LOCK_ACCOUNT,
                    details=f"Locked {subject} for {minutes} minutes",
                    call=self._auth_call("lock_account", subject, minutes, reason),
                    params={"subject": subject, "minutes": minutes},
                ))

        elif alert.detection_type == DetectionType.SIMULTANEOUS_LOGINS:
            if alert.severity == Severity.HIGH:
                planned.append(PlannedAction(
                    action_type=ActionType.INVALIDATE_SESSIONS,
                    details=f"Invalidated sessions of {subject} except from {address}",
                    call=self._auth_call("invalidate_sessions", subject, except_address=address),
                    params={"subject": subject, "except_address": address},
                ))

        elif alert.detection_type == DetectionType.UNUSUAL_LOCATION:
            if alert.severity == Severity.HIGH:
                planned.append(PlannedAction(
                    action_type=ActionType.REQUIRE_VERIFICATION,
                    details=f"Additional verification required for {subject}",
                    call=self._auth_call("require_additional_verification", subject, "location"),
                    params={"subject": subject, "reason": "location"},
                ))

        return planned

    def dispatch(self, alert: Alert, event: LoginEvent) -> List[ActionResult]:
        """Execute the actions for a new alert.

        Args:
            alert: The alert that was just raised
            event: The login event that triggered it

        Returns:
            One ActionResult per planned action, in plan order
        """
        planned = self.plan(alert, event)
        if not planned:
            return []

        executor = self._get_executor()
        submitted: List[Tuple[PlannedAction, Any]] = []
        for action in planned:
            future = executor.submit(action.call) if action.call is not None else None
            submitted.append((action, future))

        deadline = time.monotonic() + self.timeout_seconds
        results: List[ActionResult] = []
        for action, future in submitted:
            if future is None:
                logger.info(
                    f"Action {action.action_type.value} skipped: no collaborator configured",
                    extra={"alert_id": alert.alert_id},
                )
                results.append(ActionResult(
                    action_type=action.action_type,
                    status=ActionStatus.SKIPPED,
                    details=f"{action.details} (no collaborator configured)",
                ))
                continue

            try:
                future.result(timeout=max(0.0, deadline - time.monotonic()))
            except FutureTimeoutError:
                future.cancel()
                error = ActionDispatchError(
                    f"Timed out after {self.timeout_seconds}s",
                    action_type=action.action_type.value,
                    details=dict(action.params),
                )
            except Exception as e:
                error = ActionDispatchError(
                    f"{type(e).__name__}: {e}",
                    action_type=action.action_type.value,
                    details=dict(action.params),
                )
            else:
                results.append(ActionResult(
                    action_type=action.action_type,
                    status=ActionStatus.SUCCEEDED,
                    details=action.details,
                ))
                continue

            logger.error(
                f"Action {action.action_type.value} failed for alert {alert.alert_id}: {error.message}",
                extra={"alert_id": alert.alert_id, "subject": alert.subject},
            )
            results.append(ActionResult(
                action_type=action.action_type,
                status=ActionStatus.FAILED,
                details=action.details,
                error=error,
            ))

        return results
