"""Utility modules for md-converter."""

from md_converter.utils.logging import get_logger, setup_logging
from md_converter.utils.config import Config, get_config

__all__ = [
    "get_logger",
    "setup_logging",
    "Config",
    "get_config",
]
