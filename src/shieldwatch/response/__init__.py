"""Response - protective actions taken when alerts are raised."""

from shieldwatch.response.collaborators import (
    AuthClient,
    BlockListClient,
    InMemoryAuthService,
    InMemoryBlockList,
)
from shieldwatch.response.dispatcher import (
    ActionDispatcher,
    ActionResult,
    PlannedAction,
    progressive_block_minutes,
)

__all__ = [
    "AuthClient",
    "BlockListClient",
    "InMemoryAuthService",
    "InMemoryBlockList",
    "ActionDispatcher",
    "ActionResult",
    "PlannedAction",
    "progressive_block_minutes",
]
