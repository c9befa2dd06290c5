"""Job configuration loading."""

from .config import Config, ConfigManager

__all__ = [
    "Config",
    "ConfigManager",
]
