"""Side-effect collaborators called in response to alerts.

The abstract bases describe what the service needs from the
authentication layer and the network block list. The in-memory
implementations are used for local development and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import threading
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BlockListClient(ABC):
    """Blocks source addresses for a period of time."""

    @abstractmethod
    def block_address(self, address: str, minutes: int, reason: str) -> None:
        """Block an address for the given number of minutes."""
        pass


class AuthClient(ABC):
    """Session and account controls of the authentication layer."""

    @abstractmethod
    def invalidate_sessions(self, subject: str, except_address: Optional[str] = None) -> int:
        """Invalidate the subject's sessions, keeping the one from except_address.

        Returns:
            Number of sessions invalidated
        """
        pass

    @abstractmethod
    def require_additional_verification(self, subject: str, reason: str) -> None:
        """Demand step-up verification on the subject's next login."""
        pass

    @abstractmethod
    def lock_account(self, subject: str, minutes: int, reason: str) -> None:
        """Temporarily lock an account."""
        pass

    @abstractmethod
    def is_account_locked(self, subject: str) -> bool:
        pass


@dataclass
class Block:
    address: str
    until: datetime
    reason: str


class InMemoryBlockList(BlockListClient):
    """Block list held in process memory.

    Re-blocking an address keeps the later expiry.
    """

    def __init__(self):
        self._blocks: Dict[str, Block] = {}
        self._lock = threading.Lock()

    def block_address(self, address: str, minutes: int, reason: str) -> None:
        until = _utcnow() + timedelta(minutes=minutes)
        with self._lock:
            current = self._blocks.get(address)
            if current is None or current.until < until:
                self._blocks[address] = Block(address=address, until=until, reason=reason)
        logger.info(f"Blocked {address} for {minutes} minutes: {reason}")

    def is_blocked(self, address: str, now: Optional[datetime] = None) -> bool:
        now = now or _utcnow()
        with self._lock:
            block = self._blocks.get(address)
            return block is not None and block.until > now

    def get_block(self, address: str) -> Optional[Block]:
        with self._lock:
            return self._blocks.get(address)

    def blocked_addresses(self, now: Optional[datetime] = None) -> List[str]:
        now = now or _utcnow()
        with self._lock:
            return sorted(a for a, b in self._blocks.items() if b.until > now)


class InMemoryAuthService(AuthClient):
    """Session registry and account locks held in process memory."""

    def __init__(self):
        self._sessions: Dict[str, List[str]] = {}
        self._verification: Dict[str, str] = {}
        self._locks: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def open_session(self, subject: str, address: str) -> None:
        with self._lock:
            self._sessions.setdefault(subject, []).append(address)

    def sessions(self, subject: str) -> List[str]:
        with self._lock:
            return list(self._sessions.get(subject, []))

    def invalidate_sessions(self, subject: str, except_address: Optional[str] = None) -> int:
        with self._lock:
            current = self._sessions.get(subject, [])
            kept = [a for a in current if except_address is not None and a == except_address]
            self._sessions[subject] = kept
            invalidated = len(current) - len(kept)
        logger.info(f"Invalidated {invalidated} sessions for {subject}")
        return invalidated

    def require_additional_verification(self, subject: str, reason: str) -> None:
        with self._lock:
            self._verification[subject] = reason
        logger.info(f"Additional verification required for {subject}: {reason}")

    def verification_required(self, subject: str) -> Optional[str]:
        with self._lock:
            return self._verification.get(subject)

    def lock_account(self, subject: str, minutes: int, reason: str) -> None:
        until = _utcnow() + timedelta(minutes=minutes)
        with self._lock:
            self._locks[subject] = max(until, self._locks.get(subject, until))
        logger.warning(f"Account {subject} locked for {minutes} minutes: {reason}")

    def is_account_locked(self, subject: str) -> bool:
        with self._lock:
            until = self._locks.get(subject)
            return until is not None and until > _utcnow()
