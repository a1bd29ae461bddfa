"""Configuration package for dioprobe."""

from __future__ import annotations

from dioprobe.config.config import CONFIG_FILE_NAME, ENV_MAPPINGS, ConfigManager

__all__ = [
    "CONFIG_FILE_NAME",
    "ENV_MAPPINGS",
    "ConfigManager",
]
