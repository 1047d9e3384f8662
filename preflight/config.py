"""
Configuration management for preflight.

Settings live in $PREFLIGHT_HOME/config.yaml (default ~/.config/preflight):

    deployment: /path/to/manifest.yml
    workspace_dir: null
    logging:
      level: INFO
      format: structured
      console: false
      output: logs/preflight-{date}.log
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from preflight.errors import ConfigError


CONFIG_FILENAME = "config.yaml"

DEFAULT_LOGGING = {
    "level": "INFO",
    "format": "structured",
    "console": False,
    "output": "logs/preflight-{date}.log",
}

LOG_FORMATS = ("structured", "pretty")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_preflight_home() -> Path:
    """Return the preflight home directory ($PREFLIGHT_HOME or ~/.config/preflight)."""
    home = os.environ.get("PREFLIGHT_HOME")
    if home:
        return Path(home).expanduser()
    return Path("~/.config/preflight").expanduser()


@dataclass
class PreflightConfig:
    """Persisted preflight settings."""

    deployment: Optional[str] = None
    workspace_dir: Optional[str] = None
    logging: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_LOGGING))
    config_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config_path: Optional[Path] = None) -> "PreflightConfig":
        deployment = data.get("deployment")
        if deployment is not None and not isinstance(deployment, str):
            raise ConfigError("'deployment' must be a string path")

        workspace_dir = data.get("workspace_dir")
        if workspace_dir is not None and not isinstance(workspace_dir, str):
            raise ConfigError("'workspace_dir' must be a string path")

        logging_cfg = data.get("logging") or {}
        if not isinstance(logging_cfg, dict):
            raise ConfigError("'logging' must be a mapping")

        return cls(
            deployment=deployment or None,
            workspace_dir=workspace_dir or None,
            logging={**DEFAULT_LOGGING, **logging_cfg},
            config_path=config_path,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deployment": self.deployment,
            "workspace_dir": self.workspace_dir,
            "logging": dict(self.logging),
        }

    def get_log_file_path(self) -> Path:
        """Get log file path with date interpolation, relative to the home dir."""
        log_output = str(self.logging.get("output", DEFAULT_LOGGING["output"]))
        log_output = log_output.replace("{date}", datetime.now().strftime("%Y-%m-%d"))
        path = Path(log_output).expanduser()
        if not path.is_absolute():
            path = get_preflight_home() / path
        return path

    def get_log_level(self) -> str:
        level = str(self.logging.get("level", "INFO")).upper()
        if level not in LOG_LEVELS:
            raise ConfigError(
                f"Unknown log level '{level}'. Expected one of: {', '.join(LOG_LEVELS)}"
            )
        return level

    def get_log_format(self) -> str:
        """Get log format (structured or pretty)."""
        log_format = self.logging.get("format", "structured")
        if log_format not in LOG_FORMATS:
            raise ConfigError(
                f"Unknown log format '{log_format}'. Expected one of: {', '.join(LOG_FORMATS)}"
            )
        return log_format

    def should_log_to_console(self) -> bool:
        return bool(self.logging.get("console", False))

    def get_workspace_dir(self) -> Optional[Path]:
        if not self.workspace_dir:
            return None
        return Path(self.workspace_dir).expanduser()


def default_config_path() -> Path:
    return get_preflight_home() / CONFIG_FILENAME


def load_config(config_path: Optional[Path] = None) -> PreflightConfig:
    """
    Load preflight configuration.

    Args:
        config_path: Path to config file. Defaults to $PREFLIGHT_HOME/config.yaml

    Returns:
        PreflightConfig (defaults when the file does not exist yet)

    Raises:
        ConfigError: If the file is unreadable or not a YAML mapping
    """
    config_path = Path(config_path) if config_path else default_config_path()

    if not config_path.exists():
        return PreflightConfig(config_path=config_path)

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}", cause=e) from e
    except OSError as e:
        raise ConfigError(f"Reading {config_path}: {e}", cause=e) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    return PreflightConfig.from_dict(data, config_path=config_path)


def save_config(config: PreflightConfig, config_path: Optional[Path] = None) -> Path:
    """
    Write configuration back to disk.

    Returns:
        Path written

    Raises:
        ConfigError: If the file cannot be written
    """
    path = Path(config_path or config.config_path or default_config_path())
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(config.to_dict(), sort_keys=False))
    except OSError as e:
        raise ConfigError(f"Writing {path}: {e}", cause=e) from e

    config.config_path = path
    return path
