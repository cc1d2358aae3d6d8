"""Audit module - Append-only JSONL log of alert lifecycle events.

Entries are chained by hash so tampering is detectable.
"""

from shieldwatch.governance.audit.logger import AuditLogger, AuditLogIntegrityError

__all__ = [
    "AuditLogger",
    "AuditLogIntegrityError",
]
