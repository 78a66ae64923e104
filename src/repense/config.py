"""Configuration loading for Repense."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_FILE = "repense.yaml"
DEFAULT_DATABASE_URL = "sqlite:///repense.db"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


@dataclass
class Settings:
    """Runtime settings.

    Values come from an optional YAML file, then REPENSE_* environment
    variables override them.
    """

    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    log_dir: str | None = None
    echo_sql: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create settings from a dictionary.

        Args:
            data: Settings mapping, typically parsed from YAML.

        Returns:
            Parsed settings object.

        Raises:
            ConfigError: If a field has the wrong type.
        """
        unknown = sorted(set(data) - {"database_url", "log_level", "log_dir", "echo_sql"})
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(unknown)}")

        database_url = data.get("database_url", DEFAULT_DATABASE_URL)
        if not isinstance(database_url, str) or not database_url:
            raise ConfigError("database_url must be a non-empty string")

        echo_sql = data.get("echo_sql", False)
        if not isinstance(echo_sql, bool):
            raise ConfigError("echo_sql must be a boolean")

        log_dir = data.get("log_dir")
        return cls(
            database_url=database_url,
            log_level=str(data.get("log_level", "INFO")).upper(),
            log_dir=str(log_dir) if log_dir is not None else None,
            echo_sql=echo_sql,
        )

    def apply_env(self, environ: dict[str, str] | None = None) -> Settings:
        """Apply REPENSE_* environment overrides in place.

        Args:
            environ: Environment mapping. Defaults to os.environ.

        Returns:
            This settings object.
        """
        env = os.environ if environ is None else environ
        if env.get("REPENSE_DATABASE_URL"):
            self.database_url = env["REPENSE_DATABASE_URL"]
        if env.get("REPENSE_LOG_LEVEL"):
            self.log_level = env["REPENSE_LOG_LEVEL"].upper()
        if env.get("REPENSE_LOG_DIR"):
            self.log_dir = env["REPENSE_LOG_DIR"]
        return self


def load_settings(
    config_path: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> Settings:
    """Load settings from a YAML file and the environment.

    Args:
        config_path: Path to repense.yaml. When None, ./repense.yaml is used
            if present, otherwise defaults apply.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Parsed settings object.

    Raises:
        ConfigError: If an explicit file doesn't exist or is invalid.
    """
    if config_path is None:
        default_path = Path.cwd() / DEFAULT_CONFIG_FILE
        if not default_path.exists():
            return Settings().apply_env(environ)
        config_path = default_path

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")

    return Settings.from_dict(data).apply_env(environ)
