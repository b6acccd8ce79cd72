"""Path management for chrome-cmd.

Manages the ~/.config/chrome-cmd/ directory shared by the CLI and every
bridge process.
"""

import os
from pathlib import Path

APP_NAME = "chrome-cmd"

# Base directory for all chrome-cmd data (overridable for tests and sandboxes)
CONFIG_DIR = Path(os.environ.get("CHROME_CMD_HOME", Path.home() / ".config" / APP_NAME))

# Profiles, active profile and per-tab state
CONFIG_FILE = CONFIG_DIR / "config.json"

# Registry of running bridge processes, keyed by profile id
BRIDGES_FILE = CONFIG_DIR / "bridges.json"

# User-editable settings
SETTINGS_FILE = CONFIG_DIR / "settings.yaml"

# Log directory
LOG_DIR = CONFIG_DIR / "logs"


def ensure_dirs() -> None:
    """Create directory structure if missing.

    Creates:
    - ~/.config/chrome-cmd/ (mode 0o700 - user-only access)
    - ~/.config/chrome-cmd/logs/ (mode 0o700)
    """
    CONFIG_DIR.mkdir(mode=0o700, parents=True, exist_ok=True)
    LOG_DIR.mkdir(mode=0o700, exist_ok=True)


def get_log_file(name: str = "bridge") -> Path:
    """Get path to a log file.

    Args:
        name: Log file name (without extension)

    Returns:
        Path to the log file
    """
    return LOG_DIR / f"{name}.log"
