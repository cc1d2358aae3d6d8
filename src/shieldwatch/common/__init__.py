"""Common utilities - logging, config, exceptions."""

from shieldwatch.common.logging.logger import get_logger
from shieldwatch.common.config import Config, get_config, reset_config
from shieldwatch.common.exceptions import (
    ShieldWatchError,
    ConfigurationError,
    InvalidEventError,
    DetectorError,
    ActionDispatchError,
    StorageError,
    StorageCapacityError,
    AlertNotFoundError,
    AlertStateError,
)

__all__ = [
    # Logging
    "get_logger",
    # Config
    "Config",
    "get_config",
    "reset_config",
    # Exceptions
    "ShieldWatchError",
    "ConfigurationError",
    "InvalidEventError",
    "DetectorError",
    "ActionDispatchError",
    "StorageError",
    "StorageCapacityError",
    "AlertNotFoundError",
    "AlertStateError",
]
