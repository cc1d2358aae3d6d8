"""Behavior models.

Rolling per-subject login profiles and the store that owns them.
Detectors read these profiles; only the store mutates them.
"""

from shieldwatch.models.behavior.profile import (
    AttemptRecord,
    BehaviorModel,
    LoginRecord,
    UsageStats,
)
from shieldwatch.models.behavior.repository import (
    FileModelRepository,
    InMemoryModelRepository,
    ModelRepository,
)
from shieldwatch.models.behavior.store import BehaviorModelStore

__all__ = [
    "AttemptRecord",
    "BehaviorModel",
    "LoginRecord",
    "UsageStats",
    "FileModelRepository",
    "InMemoryModelRepository",
    "ModelRepository",
    "BehaviorModelStore",
]
