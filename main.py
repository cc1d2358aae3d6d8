#!/usr/bin/env python3
"""Main entry point for ShieldWatch."""

import uvicorn

from shieldwatch.common.config import get_config
from shieldwatch.common.logging import get_logger

logger = get_logger(__name__)


def main():
    """Serve the ShieldWatch API."""
    config = get_config()
    logger.info(f"ShieldWatch starting in {config.environment.value} mode")
    logger.info(f"Detection rules: {config.resolved_rules_file}")

    uvicorn.run(
        "shieldwatch.api.gateway:app",
        host=config.api_host,
        port=config.api_port,
        log_level=config.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
