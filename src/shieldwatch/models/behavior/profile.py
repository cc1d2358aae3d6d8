"""Behavior model data structures.

Defines the rolling per-subject profile the detectors read: bounded
login history, hour/day frequency counters, device and address usage,
and outcome-specific attempt histories.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from shieldwatch.common.constants import BehaviorConstants
from shieldwatch.core.types import LoginOutcome
from shieldwatch.data.schemas.login_event import GeoLocation, LoginEvent


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class LoginRecord:
    """One entry of the login-time history."""
    timestamp: datetime
    hour: int
    day: int  # Monday=0 .. Sunday=6
    outcome: LoginOutcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "hour": self.hour,
            "day": self.day,
            "outcome": self.outcome.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoginRecord":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            hour=data["hour"],
            day=data["day"],
            outcome=LoginOutcome(data["outcome"]),
        )


@dataclass
class AttemptRecord:
    """A single login attempt with its network context."""
    timestamp: datetime
    source_address: str
    user_agent: str
    outcome: LoginOutcome
    geo_location: Optional[GeoLocation] = None

    @classmethod
    def from_event(cls, event: LoginEvent) -> "AttemptRecord":
        return cls(
            timestamp=event.timestamp,
            source_address=event.source_address,
            user_agent=event.user_agent,
            outcome=event.outcome,
            geo_location=event.geo_location,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "source_address": self.source_address,
            "user_agent": self.user_agent,
            "outcome": self.outcome.value,
            "geo_location": (
                self.geo_location.model_dump() if self.geo_location else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttemptRecord":
        geo = data.get("geo_location")
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            source_address=data["source_address"],
            user_agent=data["user_agent"],
            outcome=LoginOutcome(data["outcome"]),
            geo_location=GeoLocation.model_validate(geo) if geo else None,
        )


@dataclass
class UsageStats:
    """First/last sighting and count for a device or address."""
    first_seen: datetime
    last_seen: datetime
    count: int = 1

    def touch(self, when: datetime) -> None:
        self.last_seen = max(self.last_seen, when)
        self.count += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat(),
            "count": self.count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageStats":
        return cls(
            first_seen=datetime.fromisoformat(data["first_seen"]),
            last_seen=datetime.fromisoformat(data["last_seen"]),
            count=data["count"],
        )


@dataclass
class BehaviorModel:
    """Rolling behavior profile for a subject.

    Attributes:
        subject: Subject this model belongs to
        created_at: Event time of the first modeled event
        updated_at: Event time of the latest modeled event
        login_times: Bounded login history (oldest evicted first)
        hour_counts: Logins per hour of day
        day_counts: Logins per day of week
        devices: User agent -> usage
        addresses: Source address -> usage
        failed_attempts: Bounded failure history
        successful_logins: Bounded success history
        last_login: Most recent attempt, any outcome
        previous_login: The attempt that was last before the latest update
    """
    subject: str
    created_at: datetime
    updated_at: datetime
    login_times: List[LoginRecord] = field(default_factory=list)
    hour_counts: Dict[int, int] = field(default_factory=dict)
    day_counts: Dict[int, int] = field(default_factory=dict)
    devices: Dict[str, UsageStats] = field(default_factory=dict)
    addresses: Dict[str, UsageStats] = field(default_factory=dict)
    failed_attempts: List[AttemptRecord] = field(default_factory=list)
    successful_logins: List[AttemptRecord] = field(default_factory=list)
    last_login: Optional[AttemptRecord] = None
    previous_login: Optional[AttemptRecord] = None
    max_login_history: int = BehaviorConstants.MAX_LOGIN_HISTORY
    max_failed_history: int = BehaviorConstants.MAX_FAILED_HISTORY
    max_success_history: int = BehaviorConstants.MAX_SUCCESS_HISTORY

    @classmethod
    def create_empty(cls, subject: str, created_at: datetime) -> "BehaviorModel":
        return cls(subject=subject, created_at=created_at, updated_at=created_at)

    def record(self, event: LoginEvent) -> None:
        """Fold a login event into the model.

        Args:
            event: Validated login event for this subject
        """
        ts = event.timestamp
        attempt = AttemptRecord.from_event(event)

        self.login_times.append(LoginRecord(
            timestamp=ts,
            hour=ts.hour,
            day=ts.weekday(),
            outcome=event.outcome,
        ))
        if len(self.login_times) > self.max_login_history:
            self.login_times = self.login_times[-self.max_login_history:]

        self.hour_counts[ts.hour] = self.hour_counts.get(ts.hour, 0) + 1
        self.day_counts[ts.weekday()] = self.day_counts.get(ts.weekday(), 0) + 1

        self._touch(self.devices, event.user_agent, ts)
        self._touch(self.addresses, event.source_address, ts)

        if event.is_failure:
            self.failed_attempts.append(attempt)
            if len(self.failed_attempts) > self.max_failed_history:
                self.failed_attempts = self.failed_attempts[-self.max_failed_history:]
        else:
            self.successful_logins.append(attempt)
            if len(self.successful_logins) > self.max_success_history:
                self.successful_logins = self.successful_logins[-self.max_success_history:]

        self.previous_login = self.last_login
        self.last_login = attempt
        self.updated_at = max(self.updated_at, ts)

    @staticmethod
    def _touch(usage: Dict[str, UsageStats], key: str, when: datetime) -> None:
        if key in usage:
            usage[key].touch(when)
        else:
            usage[key] = UsageStats(first_seen=when, last_seen=when)

    @property
    def login_count(self) -> int:
        return len(self.login_times)

    def hour_share(self, hour: int) -> float:
        """Fraction of the login history that happened at this hour."""
        if not self.login_times:
            return 0.0
        matching = sum(1 for record in self.login_times if record.hour == hour)
        return matching / len(self.login_times)

    def day_share(self, day: int) -> float:
        """Lifetime logins on this weekday relative to the bounded history."""
        if not self.login_times:
            return 0.0
        return self.day_counts.get(day, 0) / len(self.login_times)

    def age_days(self, now: datetime) -> float:
        return (now - self.created_at).total_seconds() / 86400.0

    def last_activity(self) -> datetime:
        return self.last_login.timestamp if self.last_login else self.updated_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "login_times": [r.to_dict() for r in self.login_times],
            "hour_counts": {str(k): v for k, v in self.hour_counts.items()},
            "day_counts": {str(k): v for k, v in self.day_counts.items()},
            "devices": {k: v.to_dict() for k, v in self.devices.items()},
            "addresses": {k: v.to_dict() for k, v in self.addresses.items()},
            "failed_attempts": [a.to_dict() for a in self.failed_attempts],
            "successful_logins": [a.to_dict() for a in self.successful_logins],
            "last_login": self.last_login.to_dict() if self.last_login else None,
            "previous_login": self.previous_login.to_dict() if self.previous_login else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BehaviorModel":
        last = data.get("last_login")
        previous = data.get("previous_login")
        return cls(
            subject=data["subject"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=_dt(data.get("updated_at")) or datetime.fromisoformat(data["created_at"]),
            login_times=[LoginRecord.from_dict(r) for r in data.get("login_times", [])],
            hour_counts={int(k): v for k, v in data.get("hour_counts", {}).items()},
            day_counts={int(k): v for k, v in data.get("day_counts", {}).items()},
            devices={k: UsageStats.from_dict(v) for k, v in data.get("devices", {}).items()},
            addresses={k: UsageStats.from_dict(v) for k, v in data.get("addresses", {}).items()},
            failed_attempts=[AttemptRecord.from_dict(a) for a in data.get("failed_attempts", [])],
            successful_logins=[AttemptRecord.from_dict(a) for a in data.get("successful_logins", [])],
            last_login=AttemptRecord.from_dict(last) if last else None,
            previous_login=AttemptRecord.from_dict(previous) if previous else None,
        )
