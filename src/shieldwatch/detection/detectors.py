"""Detectors - heuristics evaluated independently for every login event.

Each detector is a pure function (event, model, rules) -> Detection | None.
The model already includes the current event: the store updates it
before the bank runs. Detectors that compare against the state before
the current event read model.previous_login, or discount the current
event from usage counts.

A subject below a detector's minimum sample size never triggers it.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from shieldwatch.common.config.rules import DetectionRules
from shieldwatch.core.types import DetectionType, Severity
from shieldwatch.data.schemas.alert import Detection
from shieldwatch.data.schemas.login_event import LoginEvent
from shieldwatch.detection.geo import DistanceEstimator
from shieldwatch.models.behavior.profile import BehaviorModel


def _detection(
    event: LoginEvent,
    detection_type: DetectionType,
    severity: Severity,
    explanation: str,
    evidence: Dict[str, Any],
) -> Detection:
    return Detection(
        detection_type=detection_type,
        severity=severity,
        explanation=explanation,
        evidence=evidence,
        subject=event.subject,
        source_address=event.source_address,
        detected_at=event.timestamp,
    )


def is_night_hour(hour: int, start_hour: int, end_hour: int) -> bool:
    """Check if an hour falls in the [start, end) window.

    Handles windows wrapping midnight (e.g., 22:00 to 06:00).
    """
    if start_hour <= end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour


def detect_unusual_hour(
    event: LoginEvent, model: BehaviorModel, rules: DetectionRules
) -> Optional[Detection]:
    """Login at a night hour the subject rarely uses."""
    cfg = rules.unusual_hours
    hour = event.timestamp.hour

    if not is_night_hour(hour, cfg.start_hour, cfg.end_hour):
        return None
    if model.login_count < cfg.min_login_count:
        return None

    hour_percentage = model.hour_share(hour) * 100
    if hour_percentage >= cfg.rare_hour_percent:
        return None

    severity = Severity.MEDIUM if hour_percentage < cfg.very_rare_hour_percent else Severity.LOW
    return _detection(
        event,
        DetectionType.UNUSUAL_LOGIN_HOUR,
        severity,
        f"Login at unusual hour ({hour:02d}:00) for {event.subject}",
        {
            "hour": hour,
            "hour_percentage": round(hour_percentage, 2),
            "user_agent": event.user_agent,
            "threshold": cfg.rare_hour_percent,
        },
    )


def detect_unusual_location(
    event: LoginEvent,
    model: BehaviorModel,
    rules: DetectionRules,
    distance_estimator: Optional[DistanceEstimator] = None,
) -> Optional[Detection]:
    """Successful login far away from the previous attempt shortly after it."""
    if not event.is_success or distance_estimator is None:
        return None

    cfg = rules.unusual_locations
    previous = model.previous_login
    if previous is None or previous.source_address == event.source_address:
        return None

    gap = event.timestamp - previous.timestamp
    if abs(gap) > timedelta(hours=cfg.time_window_hours):
        return None

    distance = distance_estimator.estimate(previous, event)
    if distance is None or distance < cfg.distance_threshold_km:
        return None

    severity = Severity.HIGH if distance > cfg.distance_threshold_km * 2 else Severity.MEDIUM
    return _detection(
        event,
        DetectionType.UNUSUAL_LOCATION,
        severity,
        f"Unusual location change for {event.subject} "
        f"({previous.source_address} -> {event.source_address})",
        {
            "previous_address": previous.source_address,
            "current_address": event.source_address,
            "time_difference_minutes": round(abs(gap).total_seconds() / 60),
            "distance_km": round(distance),
            "threshold_km": cfg.distance_threshold_km,
        },
    )


def detect_multi_device_login(
    event: LoginEvent, model: BehaviorModel, rules: DetectionRules
) -> Optional[Detection]:
    """Successful logins from many distinct user agents in a short window."""
    if not event.is_success:
        return None

    cfg = rules.multi_device_login
    if len(model.successful_logins) < 2:
        return None

    window = timedelta(hours=cfg.time_window_hours)
    devices = {
        login.user_agent for login in model.successful_logins
        if timedelta(0) <= event.timestamp - login.timestamp <= window
    }
    devices.add(event.user_agent)

    if len(devices) < cfg.device_count:
        return None

    severity = Severity.HIGH if len(devices) > cfg.device_count + 1 else Severity.MEDIUM
    return _detection(
        event,
        DetectionType.MULTI_DEVICE_LOGIN,
        severity,
        f"Logins from {len(devices)} different devices within "
        f"{cfg.time_window_hours:g}h for {event.subject}",
        {
            "device_count": len(devices),
            "time_window_hours": cfg.time_window_hours,
            "threshold": cfg.device_count,
        },
    )


def detect_multiple_failed_attempts(
    event: LoginEvent, model: BehaviorModel, rules: DetectionRules
) -> Optional[Detection]:
    """Repeated failures for a subject within the failure window."""
    if not event.is_failure:
        return None

    cfg = rules.failed_attempts
    window = timedelta(minutes=cfg.time_window_minutes)
    count = sum(
        1 for attempt in model.failed_attempts
        if timedelta(0) <= event.timestamp - attempt.timestamp <= window
    )
    if count < cfg.threshold:
        return None

    if count >= cfg.threshold * 2:
        severity = Severity.CRITICAL
    elif count >= cfg.threshold * 1.5:
        severity = Severity.HIGH
    else:
        severity = Severity.MEDIUM

    return _detection(
        event,
        DetectionType.MULTIPLE_FAILED_ATTEMPTS,
        severity,
        f"{count} failed login attempts in {cfg.time_window_minutes:g} minutes for {event.subject}",
        {
            "attempt_count": count,
            "time_window_minutes": cfg.time_window_minutes,
            "threshold": cfg.threshold,
            "source_address": event.source_address,
            "progressive_blocking": cfg.progressive_blocking,
        },
    )


def detect_brute_force(
    event: LoginEvent, model: BehaviorModel, rules: DetectionRules
) -> Optional[Detection]:
    """Failure rate above the per-minute brute-force threshold."""
    if not event.is_failure:
        return None

    cfg = rules.brute_force
    if len(model.failed_attempts) < cfg.attempts_per_minute:
        return None

    window = timedelta(seconds=60)
    count = sum(
        1 for attempt in model.failed_attempts
        if timedelta(0) <= event.timestamp - attempt.timestamp <= window
    )
    if count < cfg.attempts_per_minute:
        return None

    return _detection(
        event,
        DetectionType.BRUTE_FORCE_ATTEMPT,
        Severity.CRITICAL,
        f"Brute force attempt detected for {event.subject} ({count} attempts/minute)",
        {
            "attempt_count": count,
            "time_window_minutes": 1,
            "threshold": cfg.attempts_per_minute,
            "source_address": event.source_address,
            "block_duration_minutes": cfg.block_duration_minutes,
        },
    )


def behavior_anomaly_score(
    event: LoginEvent, model: BehaviorModel, rules: DetectionRules
) -> Dict[str, float]:
    """Composite anomaly score and its inputs.

    Device and address familiarity count only sightings before the
    current event, so a never-seen device scores as new.
    """
    cfg = rules.behavior_change
    score = 0.0

    hour_frequency = model.hour_share(event.timestamp.hour)
    if hour_frequency < 0.1:
        score += 0.3

    day_frequency = model.day_share(event.timestamp.weekday())
    if day_frequency < 0.1:
        score += 0.2

    device = model.devices.get(event.user_agent)
    device_seen = device.count - 1 if device else 0
    if device_seen == 0:
        score += 0.3
    elif device_seen < 3:
        score += 0.2

    address = model.addresses.get(event.source_address)
    address_seen = address.count - 1 if address else 0
    if address_seen == 0:
        score += 0.3
    elif address_seen < 3:
        score += 0.2

    score *= cfg.sensitivity_level / 2

    return {
        "anomaly_score": round(score, 4),
        "hour_frequency": round(hour_frequency, 2),
        "day_frequency": round(day_frequency, 2),
        "device_familiarity": device_seen,
        "address_familiarity": address_seen,
    }


def detect_behavior_change(
    event: LoginEvent, model: BehaviorModel, rules: DetectionRules
) -> Optional[Detection]:
    """Weighted drift from the subject's learned habits."""
    cfg = rules.behavior_change
    if model.login_count < cfg.minimum_data_points:
        return None
    if model.age_days(event.timestamp) < cfg.learning_period_days:
        return None

    factors = behavior_anomaly_score(event, model, rules)
    score = factors["anomaly_score"]
    if score < cfg.anomaly_threshold:
        return None

    if score > 0.9:
        severity = Severity.HIGH
    elif score > 0.7:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW

    return _detection(
        event,
        DetectionType.BEHAVIOR_CHANGE,
        severity,
        f"Behavior change detected for {event.subject} (score: {score * 100:.0f}%)",
        {**factors, "sensitivity_level": cfg.sensitivity_level},
    )


def detect_simultaneous_logins(
    event: LoginEvent, model: BehaviorModel, rules: DetectionRules
) -> Optional[Detection]:
    """Another successful login for the subject within a few minutes."""
    if not event.is_success:
        return None

    cfg = rules.simultaneous_logins
    window = timedelta(minutes=cfg.time_window_minutes)
    recent = [
        login for login in model.successful_logins
        if abs(event.timestamp - login.timestamp) <= window
    ]
    if not recent:
        return None

    if cfg.different_locations:
        elsewhere = [
            login for login in recent if login.source_address != event.source_address
        ]
        if not elsewhere:
            return None
        return _detection(
            event,
            DetectionType.SIMULTANEOUS_LOGINS,
            Severity.HIGH,
            f"Simultaneous logins for {event.subject} from different locations",
            {
                "current_address": event.source_address,
                "other_addresses": sorted({login.source_address for login in elsewhere}),
                "time_window_minutes": cfg.time_window_minutes,
            },
        )

    # The current event is part of the history, so another login means > 1.
    if len(recent) > 1:
        return _detection(
            event,
            DetectionType.SIMULTANEOUS_LOGINS,
            Severity.MEDIUM,
            f"Simultaneous logins for {event.subject}",
            {
                "current_address": event.source_address,
                "login_count": len(recent),
                "time_window_minutes": cfg.time_window_minutes,
            },
        )
    return None
