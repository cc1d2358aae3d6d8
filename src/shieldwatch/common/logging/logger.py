"""Centralized logging configuration."""

import logging


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """Get a configured logger instance."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    
    return logger


def configure_root_logging(level: str = "INFO") -> None:
    """Configure the root logger once for service processes."""
    logging.basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT)
