"""Configuration module - environment settings and detection rules."""

from shieldwatch.common.config.settings import (
    Config,
    Environment,
    LogLevel,
    get_config,
    reset_config,
)
from shieldwatch.common.config.rules import (
    DetectionRules,
    load_rules,
    parse_rules,
)

__all__ = [
    "Config",
    "Environment",
    "LogLevel",
    "get_config",
    "reset_config",
    "DetectionRules",
    "load_rules",
    "parse_rules",
]
