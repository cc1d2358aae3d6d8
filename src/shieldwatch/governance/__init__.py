"""Governance - audit trail for alerts and the actions taken on them."""

from shieldwatch.governance.schemas import AuditEntry, AuditEventType

__all__ = [
    "AuditEntry",
    "AuditEventType",
]
