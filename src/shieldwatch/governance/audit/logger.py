"""Audit Logger - Append-only record of alert lifecycle events.
"""

from datetime import datetime, timezone
import hashlib
import json
import logging
from pathlib import Path
import threading
from typing import Any, Dict, Generator, List, Optional, Union

from shieldwatch.common.constants import AuditConstants
from shieldwatch.data.schemas.alert import Alert, AlertAction
from shieldwatch.governance.schemas import AuditEntry, AuditEventType

logger = logging.getLogger(__name__)


class AuditLogIntegrityError(Exception):
    """Raised when audit log integrity check fails."""
    pass


class AuditLogger:
    """Records alert lifecycle events immutably in JSONL format.

    Each entry carries the hash of the previous one, so editing or removing
    a line breaks the chain and is caught by verify_integrity().
    """

    def __init__(
        self,
        log_dir: Union[str, Path],
        log_filename_pattern: str = "shieldwatch_audit_{date}.jsonl",
        enable_hash_chain: bool = True,
        hash_algorithm: str = AuditConstants.HASH_ALGORITHM,
    ):
        """Initialize audit logger.

        Args:
            log_dir: Directory for audit logs
            log_filename_pattern: Pattern for log filename. {date} is replaced.
            enable_hash_chain: Whether to enable hash chain integrity.
            hash_algorithm: Hash algorithm for integrity checks.
        """
        self.log_dir = Path(log_dir)
        self.log_filename_pattern = log_filename_pattern
        self.enable_hash_chain = enable_hash_chain
        self.hash_algorithm = hash_algorithm

        self._lock = threading.Lock()
        self._last_hash: Optional[str] = None
        self._chain_date: Optional[str] = None

        self.log_dir.mkdir(parents=True, exist_ok=True)

        if self.enable_hash_chain:
            self._resume_chain()

    def _resume_chain(self) -> None:
        # Each day's file carries its own chain
        self._chain_date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        self._last_hash = self._get_last_hash_from_log()

    def _log_path(self, date: Optional[str] = None) -> Path:
        if date is None:
            date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return self.log_dir / self.log_filename_pattern.replace("{date}", date)

    def _get_last_hash_from_log(self) -> Optional[str]:
        """Read the last hash from the current log file."""
        log_path = self._log_path()
        if not log_path.exists():
            return None

        last_hash = None
        try:
            with open(log_path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        last_hash = json.loads(line).get("entry_hash")
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not resume audit hash chain from {log_path}: {e}")
            return None

        return last_hash

    def _compute_hash(self, content: str) -> str:
        hasher = hashlib.new(self.hash_algorithm)
        hasher.update(content.encode("utf-8"))
        return hasher.hexdigest()

    def _chain(self, entry: AuditEntry) -> AuditEntry:
        """Add hash chain fields to entry."""
        if not self.enable_hash_chain:
            return entry

        entry_dict = entry.model_dump(mode="json")
        entry_dict["previous_hash"] = self._last_hash
        entry_dict["entry_hash"] = None
        content_to_hash = json.dumps(entry_dict, sort_keys=True, default=str)
        entry_dict["entry_hash"] = self._compute_hash(content_to_hash)

        return AuditEntry.model_validate(entry_dict)

    def log_alert_created(self, alert: Alert) -> AuditEntry:
        """Log a newly raised alert."""
        return self._append_entry(AuditEntry(
            event_type=AuditEventType.ALERT_CREATED,
            alert_id=alert.alert_id,
            subject=alert.subject,
            detection_type=alert.detection_type.value,
            severity=alert.severity.value,
            metadata={
                "source_address": alert.source_address,
                "explanation": alert.explanation,
                "detected_at": alert.detected_at.isoformat(),
            },
        ))

    def log_action(self, alert: Alert, action: AlertAction) -> AuditEntry:
        """Log a protective action attempted for an alert."""
        return self._append_entry(AuditEntry(
            event_type=AuditEventType.ACTION_TAKEN,
            alert_id=alert.alert_id,
            subject=alert.subject,
            detection_type=alert.detection_type.value,
            severity=alert.severity.value,
            action=action.action_type.value,
            metadata={
                "status": action.status.value,
                "details": action.details,
                "error": action.error,
            },
        ))

    def log_alert_resolved(self, alert: Alert) -> AuditEntry:
        """Log an alert resolution."""
        return self._append_entry(AuditEntry(
            event_type=AuditEventType.ALERT_RESOLVED,
            alert_id=alert.alert_id,
            subject=alert.subject,
            detection_type=alert.detection_type.value,
            severity=alert.severity.value,
            metadata={
                "resolution": alert.resolution,
                "suppressed_count": alert.suppressed_count,
            },
        ))

    def log_false_positive(self, alert: Alert, reason: str) -> AuditEntry:
        """Log an alert marked as a false positive."""
        return self._append_entry(AuditEntry(
            event_type=AuditEventType.FALSE_POSITIVE,
            alert_id=alert.alert_id,
            subject=alert.subject,
            detection_type=alert.detection_type.value,
            severity=alert.severity.value,
            metadata={"reason": reason},
        ))

    def log_system_event(
        self, event_description: str, metadata: Optional[Dict[str, Any]] = None
    ) -> AuditEntry:
        """Log a system event (startup, shutdown, rules reload, etc.)"""
        return self._append_entry(AuditEntry(
            event_type=AuditEventType.SYSTEM_EVENT,
            metadata={"event_description": event_description, **(metadata or {})},
        ))

    def _append_entry(self, entry: AuditEntry) -> AuditEntry:
        """Append entry to log file (thread-safe)."""
        with self._lock:
            today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
            if self.enable_hash_chain and self._chain_date != today:
                self._resume_chain()
            entry = self._chain(entry)

            with open(self._log_path(), "a", encoding="utf-8") as f:
                f.write(entry.to_jsonl() + "\n")

            if self.enable_hash_chain:
                self._last_hash = entry.entry_hash

            return entry

    def get_entries(
        self,
        date: Optional[str] = None,
        event_type: Optional[AuditEventType] = None,
        alert_id: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> Generator[AuditEntry, None, None]:
        """Retrieve audit entries with optional filtering."""
        log_path = self._log_path(date)
        if not log_path.exists():
            return

        with open(log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = AuditEntry.from_jsonl(line)
                except ValueError:
                    # Skip malformed entries
                    continue

                if event_type and entry.event_type != event_type:
                    continue
                if alert_id and entry.alert_id != alert_id:
                    continue
                if subject and entry.subject != subject:
                    continue
                yield entry

    def get_alert_history(self, alert_id: str) -> List[AuditEntry]:
        """Get all entries related to an alert, across all log files."""
        entries = []
        for log_file in self.get_log_files():
            with open(log_file, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entry = AuditEntry.from_jsonl(line)
                    except ValueError:
                        continue
                    if entry.alert_id == alert_id:
                        entries.append(entry)

        return sorted(entries, key=lambda e: e.timestamp)

    def verify_integrity(self, date: Optional[str] = None) -> bool:
        """Verify hash chain integrity of a day's log file.

        Raises:
            AuditLogIntegrityError: If the chain is broken or an entry was altered
        """
        if not self.enable_hash_chain:
            return True

        log_path = self._log_path(date)
        if not log_path.exists():
            return True

        previous_hash = None
        with open(log_path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue

                try:
                    entry_dict = json.loads(line)
                except json.JSONDecodeError as e:
                    raise AuditLogIntegrityError(
                        f"Malformed JSON at line {line_number}: {e}"
                    ) from e

                if entry_dict.get("previous_hash") != previous_hash:
                    raise AuditLogIntegrityError(
                        f"Hash chain broken at line {line_number}. "
                        f"Expected previous_hash={previous_hash}, "
                        f"got {entry_dict.get('previous_hash')}"
                    )

                stored_hash = entry_dict.get("entry_hash")
                entry_dict["entry_hash"] = None
                computed_hash = self._compute_hash(
                    json.dumps(entry_dict, sort_keys=True, default=str)
                )
                if computed_hash != stored_hash:
                    raise AuditLogIntegrityError(
                        f"Entry hash mismatch at line {line_number}. "
                        f"Entry may have been tampered with."
                    )

                previous_hash = stored_hash

        return True

    def get_log_files(self) -> List[Path]:
        return sorted(self.log_dir.glob("*.jsonl"))

    def get_entry_count(self, date: Optional[str] = None) -> int:
        log_path = self._log_path(date)
        if not log_path.exists():
            return 0
        with open(log_path, "r", encoding="utf-8") as f:
            return sum(1 for line in f if line.strip())
