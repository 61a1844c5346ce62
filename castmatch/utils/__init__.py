"""Utility modules for configuration, logging, errors and image handling."""

from .config import AppConfig, get_config, load_config, reset_config
from .image_utils import load_image_bytes, shrink_url
from .logger import configure_logging, get_logger, log_exception, log_execution_time

__all__ = [
    # Configuration
    "AppConfig",
    "get_config",
    "load_config",
    "reset_config",
    # Logging
    "configure_logging",
    "get_logger",
    "log_execution_time",
    "log_exception",
    # Image handling
    "load_image_bytes",
    "shrink_url",
]
