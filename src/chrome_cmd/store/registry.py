"""Registry of running bridge processes (``bridges.json``).

One entry per live bridge, keyed by profile id. Entries are hints, not
facts: a bridge killed with SIGKILL leaves its entry behind, so readers
must confirm liveness (pid check, ``GET /ping``) before trusting one.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from ..shared import paths
from .jsonfile import read_json_file, write_json_file
from .profiles import utc_now

logger = structlog.get_logger(__name__)


@dataclass
class BridgeInfo:
    """Registry entry for one running bridge."""

    port: int
    pid: int
    peer_id: str
    profile_name: str
    started_at: str = field(default_factory=utc_now)
    last_seen: str = field(default_factory=utc_now)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BridgeInfo":
        return cls(
            port=int(data["port"]),
            pid=int(data["pid"]),
            peer_id=str(data.get("peerId") or data.get("extensionId") or ""),
            profile_name=str(data.get("profileName", "")),
            started_at=str(data.get("startedAt") or utc_now()),
            last_seen=str(data.get("lastSeen") or utc_now()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "port": self.port,
            "pid": self.pid,
            "peerId": self.peer_id,
            "profileName": self.profile_name,
            "startedAt": self.started_at,
            "lastSeen": self.last_seen,
        }


def is_process_running(pid: int) -> bool:
    """Check whether ``pid`` names a live process."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)  # Signal 0 = check existence
    except ProcessLookupError:
        return False
    except PermissionError:
        # Process exists but we can't signal it (different user)
        return True
    return True


class RegistryStore:
    """Read-modify-write access to the shared bridge registry."""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else paths.BRIDGES_FILE

    def read(self) -> dict[str, BridgeInfo]:
        """Read all entries; missing, empty or corrupt file is an empty map."""
        raw = read_json_file(self.path, {})
        registry: dict[str, BridgeInfo] = {}
        for profile_id, data in raw.items():
            try:
                registry[profile_id] = BridgeInfo.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed registry entry {profile_id}: {e}")
        return registry

    def write(self, registry: dict[str, BridgeInfo]) -> None:
        write_json_file(self.path, {pid: info.to_dict() for pid, info in registry.items()})

    def get(self, profile_id: str) -> BridgeInfo | None:
        return self.read().get(profile_id)

    def register(
        self,
        profile_id: str,
        port: int,
        pid: int,
        peer_id: str,
        profile_name: str,
    ) -> BridgeInfo:
        """Write or overwrite the single entry for ``profile_id``."""
        registry = self.read()
        info = BridgeInfo(port=port, pid=pid, peer_id=peer_id, profile_name=profile_name)
        registry[profile_id] = info
        self.write(registry)
        logger.info(f"Registered bridge for profile {profile_id} on port {port} (pid {pid})")
        return info

    def unregister(self, profile_id: str, pid: int | None = None) -> bool:
        """Remove the entry for ``profile_id``.

        Args:
            profile_id: Profile whose entry to remove
            pid: If given, only remove the entry when it still belongs to this
                process (a newer bridge may have taken the profile over)

        Returns:
            True if an entry was removed
        """
        registry = self.read()
        info = registry.get(profile_id)
        if info is None:
            return False
        if pid is not None and info.pid != pid:
            logger.info(f"Registry entry for {profile_id} owned by pid {info.pid}, leaving it")
            return False
        del registry[profile_id]
        self.write(registry)
        logger.info(f"Unregistered bridge for profile {profile_id}")
        return True

    def touch(self, profile_id: str) -> bool:
        """Refresh ``lastSeen`` for ``profile_id``. Returns False if absent."""
        registry = self.read()
        info = registry.get(profile_id)
        if info is None:
            return False
        info.last_seen = utc_now()
        self.write(registry)
        return True

    def cleanup_stale(self) -> list[str]:
        """Drop entries whose process is no longer running.

        Returns:
            Profile ids that were removed
        """
        registry = self.read()
        stale = [pid for pid, info in registry.items() if not is_process_running(info.pid)]
        if stale:
            for profile_id in stale:
                del registry[profile_id]
            self.write(registry)
            logger.info(f"Removed {len(stale)} stale registry entries")
        return stale
