"""Centralized constants for ShieldWatch system configuration."""


# ===== BEHAVIOR MODEL =====
class BehaviorConstants:
    MAX_LOGIN_HISTORY = 100
    MAX_FAILED_HISTORY = 50
    MAX_SUCCESS_HISTORY = 50
    STALE_MODEL_DAYS = 90
    HOURS_IN_DAY = 24
    DAYS_IN_WEEK = 7


# ===== ALERT CORRELATION =====
class CorrelationConstants:
    THROTTLE_MINUTES = 15
    RECENT_ALERT_MAX_AGE_HOURS = 24
    RECENT_ALERT_MAX_RECORDS = 1000


# ===== RESPONSE ACTIONS =====
class ResponseConstants:
    ACTION_TIMEOUT_SECONDS = 2.0
    EXECUTOR_MAX_WORKERS = 4
    PROGRESSIVE_BASE_MINUTES = 15
    PROGRESSIVE_FACTOR = 1.5
    PROGRESSIVE_CAP_MINUTES = 120


# ===== NOTIFICATIONS & SIEM =====
class NotificationConstants:
    SIEM_QUEUE_SIZE = 10000
    SIEM_FLUSH_TIMEOUT_SECONDS = 5.0
    SIEM_QUEUE_GET_TIMEOUT = 1.0


# ===== AUDIT =====
class AuditConstants:
    HASH_ALGORITHM = "sha256"


# ===== MAINTENANCE =====
class MaintenanceConstants:
    INTERVAL_SECONDS = 3600.0
