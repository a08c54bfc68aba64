"""Utility modules for SlotForge."""

from .color import color_similarity, hex_to_rgb
from .config import Config, ConfigManager, SystemConfig
from .logging import get_logger, setup_logging

__all__ = [
    "ConfigManager",
    "Config",
    "SystemConfig",
    "setup_logging",
    "get_logger",
    "hex_to_rgb",
    "color_similarity",
]
