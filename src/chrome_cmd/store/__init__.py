"""On-disk state shared between the CLI and bridge processes."""

from .profiles import Config, ConfigStore, Profile
from .registry import BridgeInfo, RegistryStore, is_process_running

__all__ = [
    "BridgeInfo",
    "Config",
    "ConfigStore",
    "Profile",
    "RegistryStore",
    "is_process_running",
]
