"""Common utilities and shared components."""

from shotforge.common.config import Settings, get_settings
from shotforge.common.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
