"""Configuration management for dioprobe.

Loads configuration hierarchically: defaults → TOML file → environment →
command-line overrides. The resulting Config is built once at startup and
handed to the probe; it is not reloaded while the process runs.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import toml

from dioprobe.models import Config
from dioprobe.utils.exceptions import ConfigurationError
from dioprobe.utils.logging_config import setup_logging

CONFIG_FILE_NAME = "dioprobe.toml"

# Mapping of environment variables to config paths
ENV_MAPPINGS: dict[str, str] = {
    "DIOPROBE_PATH": "probe.path",
    "DIOPROBE_LISTEN": "probe.listen",
    "DIOPROBE_BLOCK_SIZE": "probe.block_size",
    "DIOPROBE_FILE_PREFIX": "probe.file_prefix",
    "DIOPROBE_LOG_LEVEL": "observability.log_level",
    "DIOPROBE_LOG_FILE": "observability.log_file",
    "DIOPROBE_STRUCTURED_LOGGING": "observability.structured_logging",
    "DIOPROBE_RICH_CONSOLE": "observability.rich_console",
}

# Values that must stay strings even when they look numeric
_STRING_PATHS = {"probe.path", "probe.listen", "probe.file_prefix", "observability.log_file"}


def _parse_env_value(raw: str, path: str) -> bool | int | str:
    if path in _STRING_PATHS:
        return raw
    if path == "observability.log_level":
        return raw.upper()
    low = raw.lower()
    if low in {"true", "1", "yes", "on"}:
        return True
    if low in {"false", "0", "no", "off"}:
        return False
    try:
        return int(raw)
    except ValueError:
        return raw


def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = d
    for p in parts[:-1]:
        cur = cur.setdefault(p, {})
    cur[parts[-1]] = value


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(
        self,
        config_file: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
    ):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for dioprobe.toml
            overrides: Dotted-path overrides (e.g. ``{"probe.path": "/data"}``)
                applied last, typically from the command line

        """
        self.config_file = self._find_config_file(config_file)
        self.overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        self.config = self._load_config()

    def _find_config_file(self, config_file: str | Path | None) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            path = Path(config_file)
            if not path.exists():
                msg = f"Configuration file not found: {path}"
                raise ConfigurationError(msg, details={"path": str(path)})
            return path

        search_paths = [
            Path.cwd() / CONFIG_FILE_NAME,
            Path.home() / ".config" / "dioprobe" / CONFIG_FILE_NAME,
        ]
        for path in search_paths:
            if path.exists():
                return path

        return None

    def _load_config(self) -> Config:
        """Load configuration from file, environment and overrides."""
        config_data: dict[str, Any] = {}

        if self.config_file is not None:
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to load config file {self.config_file}: {e}"
                raise ConfigurationError(msg, details={"path": str(self.config_file)}) from e

        config_data = self._merge_config(config_data, self._get_env_config())

        override_data: dict[str, Any] = {}
        for path, value in self.overrides.items():
            _set_nested(override_data, path, value)
        config_data = self._merge_config(config_data, override_data)

        try:
            return Config(**config_data)
        except Exception as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}
        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw, cfg_path))
        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def setup_logging(self) -> None:
        """Set up logging configuration."""
        setup_logging(self.config.observability)
        logging.getLogger(__name__).debug(
            "Configuration loaded (file=%s)", self.config_file or "<none>"
        )

    def export(self) -> str:
        """Export the effective configuration as TOML."""
        data = self.config.model_dump(mode="json", exclude_none=True)
        return toml.dumps(data)
