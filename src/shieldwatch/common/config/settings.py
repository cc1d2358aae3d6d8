"""Configuration management - Centralized configuration for ShieldWatch.

Provides environment-aware configuration with sensible defaults.
All configuration is loaded from environment variables with fallbacks.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from shieldwatch.common.constants import MaintenanceConstants, ResponseConstants


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _get_project_root() -> Path:
    """Get the project root directory."""
    # settings.py -> config -> common -> shieldwatch -> src -> project_root
    return Path(__file__).resolve().parent.parent.parent.parent.parent


def _optional_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


@dataclass
class Config:
    """Central configuration object for ShieldWatch.

    All settings can be overridden via environment variables prefixed with SHIELDWATCH_.

    Example:
        SHIELDWATCH_ENVIRONMENT=production
        SHIELDWATCH_LOG_LEVEL=INFO
        SHIELDWATCH_MODEL_STORE_DIR=/var/lib/shieldwatch/models
    """

    # Core settings
    environment: Environment = field(
        default_factory=lambda: Environment(
            os.getenv("SHIELDWATCH_ENVIRONMENT", "development")
        )
    )
    debug: bool = field(
        default_factory=lambda: os.getenv("SHIELDWATCH_DEBUG", "false").lower() == "true"
    )
    log_level: LogLevel = field(
        default_factory=lambda: LogLevel(os.getenv("SHIELDWATCH_LOG_LEVEL", "INFO"))
    )

    # Paths
    project_root: Path = field(default_factory=_get_project_root)
    rules_file: Optional[Path] = field(
        default_factory=lambda: _optional_path("SHIELDWATCH_RULES_FILE")
    )
    model_store_dir: Optional[Path] = field(
        default_factory=lambda: _optional_path("SHIELDWATCH_MODEL_STORE_DIR")
    )
    audit_log_dir: Optional[Path] = field(
        default_factory=lambda: _optional_path("SHIELDWATCH_AUDIT_LOG_DIR")
    )

    # API settings
    api_host: str = field(
        default_factory=lambda: os.getenv("SHIELDWATCH_API_HOST", "0.0.0.0")
    )
    api_port: int = field(
        default_factory=lambda: int(os.getenv("SHIELDWATCH_API_PORT", "8000"))
    )

    # SIEM export
    siem_s3_bucket: Optional[str] = field(
        default_factory=lambda: os.getenv("SHIELDWATCH_SIEM_S3_BUCKET")
    )
    aws_region: str = field(
        default_factory=lambda: os.getenv("AWS_DEFAULT_REGION", "us-east-1")
    )

    # Runtime behavior
    action_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv(
            "SHIELDWATCH_ACTION_TIMEOUT_SECONDS",
            str(ResponseConstants.ACTION_TIMEOUT_SECONDS),
        ))
    )
    maintenance_interval_seconds: float = field(
        default_factory=lambda: float(os.getenv(
            "SHIELDWATCH_MAINTENANCE_INTERVAL_SECONDS",
            str(MaintenanceConstants.INTERVAL_SECONDS),
        ))
    )

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.action_timeout_seconds <= 0:
            raise ValueError("SHIELDWATCH_ACTION_TIMEOUT_SECONDS must be positive")
        if self.maintenance_interval_seconds <= 0:
            raise ValueError("SHIELDWATCH_MAINTENANCE_INTERVAL_SECONDS must be positive")

        # Warn about debug in production
        if self.environment == Environment.PRODUCTION and self.debug:
            import warnings
            warnings.warn(
                "Debug mode is enabled in production environment",
                RuntimeWarning,
                stacklevel=2
            )

    @property
    def config_dir(self) -> Path:
        """Get the config directory path."""
        return self.project_root / "config"

    @property
    def resolved_rules_file(self) -> Path:
        """Rules file from the environment, or the bundled default."""
        return self.rules_file or self.config_dir / "detection_rules.yaml"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT


# Singleton instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config: The global configuration singleton.
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
