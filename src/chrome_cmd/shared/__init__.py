"""Shared modules for chrome-cmd.

This module provides functionality used by both sides of the system:
- Bridge host (native-messaging process launched by the browser)
- CLI (commands that talk to a running bridge)
"""

from .logging import configure_cli_logging, configure_host_logging, level_for_verbosity
from .paths import (
    BRIDGES_FILE,
    CONFIG_DIR,
    CONFIG_FILE,
    LOG_DIR,
    SETTINGS_FILE,
    ensure_dirs,
    get_log_file,
)

__all__ = [
    # Paths
    "CONFIG_DIR",
    "CONFIG_FILE",
    "BRIDGES_FILE",
    "SETTINGS_FILE",
    "LOG_DIR",
    "ensure_dirs",
    "get_log_file",
    # Logging
    "configure_cli_logging",
    "configure_host_logging",
    "level_for_verbosity",
]
