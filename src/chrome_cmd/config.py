"""Settings management.

Handles user-editable settings stored in ~/.config/chrome-cmd/settings.yaml.
Supports environment variable overrides; every value remembers its source.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .shared import paths

# Default values
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT_START = 8765
DEFAULT_PORT_END = 8774
DEFAULT_LOG_LEVEL = "info"
DEFAULT_TIMEOUT = 15.0

# Environment variable mappings
ENV_VARS = {
    "host": "CHROME_CMD_HOST",
    "port_start": "CHROME_CMD_PORT_START",
    "port_end": "CHROME_CMD_PORT_END",
    "log_level": "CHROME_CMD_LOG_LEVEL",
    "timeout": "CHROME_CMD_TIMEOUT",
}

SETTING_KEYS = tuple(ENV_VARS)

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


@dataclass
class Settings:
    """Bridge and CLI settings."""

    host: str = DEFAULT_HOST
    port_start: int = DEFAULT_PORT_START
    port_end: int = DEFAULT_PORT_END
    log_level: str = DEFAULT_LOG_LEVEL
    timeout: float = DEFAULT_TIMEOUT

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def get_source(self, key: str) -> str:
        """Get the source of a setting value."""
        return self._sources.get(key, "default")

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}


def get_settings_path() -> Path:
    """Get the settings file path."""
    return paths.SETTINGS_FILE


def coerce_setting(key: str, value: Any) -> Any:
    """Convert a raw value to the type of setting ``key``.

    Raises:
        KeyError: If ``key`` is not a known setting
        ValueError: If ``value`` cannot be converted
    """
    if key not in ENV_VARS:
        raise KeyError(key)
    if key in ("port_start", "port_end"):
        port = int(value)
        if not 1 <= port <= 65535:
            raise ValueError(f"Port out of range: {port}")
        return port
    if key == "timeout":
        timeout = float(value)
        if timeout <= 0:
            raise ValueError(f"Timeout must be positive: {timeout}")
        return timeout
    if key == "log_level":
        level = str(value).lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level
    return str(value)


def _read_settings_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def load_settings() -> Settings:
    """Load settings.

    Precedence (highest to lowest):
    1. Environment variables
    2. Settings file (~/.config/chrome-cmd/settings.yaml)
    3. Defaults

    Invalid values are ignored and the next source wins.

    Returns:
        Settings with values and sources
    """
    settings = Settings()
    sources: dict[str, str] = {key: "default" for key in SETTING_KEYS}

    file_settings = _read_settings_file(get_settings_path())
    for key in SETTING_KEYS:
        if key in file_settings:
            try:
                setattr(settings, key, coerce_setting(key, file_settings[key]))
                sources[key] = "settings file"
            except ValueError:
                pass

    for key, env_var in ENV_VARS.items():
        raw = os.environ.get(env_var)
        if raw:
            try:
                setattr(settings, key, coerce_setting(key, raw))
                sources[key] = "environment"
            except ValueError:
                pass

    settings._sources = sources
    return settings


def save_setting(key: str, value: Any) -> Any:
    """Save a setting to the settings file.

    Args:
        key: Setting key (host, port_start, port_end, log_level, timeout)
        value: Value to save

    Returns:
        The converted value that was written
    """
    converted = coerce_setting(key, value)
    settings_path = get_settings_path()

    existing = _read_settings_file(settings_path)
    existing[key] = converted

    settings_path.parent.mkdir(parents=True, exist_ok=True)
    with open(settings_path, "w") as f:
        yaml.safe_dump(existing, f, default_flow_style=False)

    return converted


def unset_setting(key: str) -> bool:
    """Remove a setting from the settings file.

    Args:
        key: Setting key to remove

    Returns:
        True if key was removed, False if not found
    """
    settings_path = get_settings_path()
    existing = _read_settings_file(settings_path)

    if key not in existing:
        return False

    del existing[key]

    with open(settings_path, "w") as f:
        yaml.safe_dump(existing, f, default_flow_style=False)

    return True
