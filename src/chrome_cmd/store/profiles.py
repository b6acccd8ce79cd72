"""Durable profile configuration (``config.json``).

Holds every known peer installation (Profile), which one is active, the
active tab id and feature-install flags. The file is last-writer-wins and
always rewritten atomically as a whole document.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from ..shared import paths
from .jsonfile import read_json_file, write_json_file

logger = structlog.get_logger(__name__)


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class Profile:
    """Durable identity of one peer installation.

    Keys this class does not model are kept in ``extra`` and written back
    unchanged, so other tools sharing ``config.json`` keep their data.
    """

    id: str
    profile_name: str
    peer_id: str
    installed_at: str = field(default_factory=utc_now)
    extension_path: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    KNOWN_KEYS = ("id", "profileName", "peerId", "extensionId", "installedAt", "extensionPath")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        return cls(
            id=str(data["id"]),
            profile_name=str(data.get("profileName", "Unknown")),
            peer_id=str(data.get("peerId") or data.get("extensionId") or ""),
            installed_at=str(data.get("installedAt") or utc_now()),
            extension_path=data.get("extensionPath"),
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "profileName": self.profile_name,
                "peerId": self.peer_id,
                # Older readers only know the extensionId spelling
                "extensionId": self.peer_id,
                "installedAt": self.installed_at,
            }
        )
        if self.extension_path:
            data["extensionPath"] = self.extension_path
        return data


@dataclass
class Config:
    """In-memory view of ``config.json``.

    Feature-install flags such as ``completionInstalled`` and any other
    top-level keys ride along in ``extra``.
    """

    active_profile_id: str | None = None
    profiles: list[Profile] = field(default_factory=list)
    active_tab_id: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    KNOWN_KEYS = ("activeProfileId", "profiles", "activeTabId")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        profiles = []
        for item in data.get("profiles") or []:
            if isinstance(item, dict) and item.get("id"):
                profiles.append(Profile.from_dict(item))
        return cls(
            active_profile_id=data.get("activeProfileId"),
            profiles=profiles,
            active_tab_id=data.get("activeTabId"),
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data["profiles"] = [p.to_dict() for p in self.profiles]
        if self.active_profile_id is not None:
            data["activeProfileId"] = self.active_profile_id
        if self.active_tab_id is not None:
            data["activeTabId"] = self.active_tab_id
        return data

    def get_profile(self, profile_id: str) -> Profile | None:
        for profile in self.profiles:
            if profile.id == profile_id:
                return profile
        return None

    @property
    def active_profile(self) -> Profile | None:
        if not self.active_profile_id:
            return None
        return self.get_profile(self.active_profile_id)


class ConfigStore:
    """Read-modify-write access to ``config.json``.

    Each mutating method loads the current document, applies one change and
    saves it, so concurrent processes only ever lose a whole update.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else paths.CONFIG_FILE

    def load(self) -> Config:
        """Load config; a missing or corrupt file is an empty config."""
        return Config.from_dict(read_json_file(self.path, {}))

    def save(self, config: Config) -> None:
        """Persist config atomically."""
        write_json_file(self.path, config.to_dict())

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    def list_profiles(self) -> list[Profile]:
        return self.load().profiles

    def get_profile(self, profile_id: str) -> Profile | None:
        return self.load().get_profile(profile_id)

    def get_active_profile(self) -> Profile | None:
        return self.load().active_profile

    def find_profile(self, query: str) -> Profile | None:
        """Find a profile by 1-based index, id, peer id or name (case-insensitive)."""
        profiles = self.list_profiles()
        query = query.strip()
        if query.isdigit():
            index = int(query)
            if 1 <= index <= len(profiles):
                return profiles[index - 1]
        for profile in profiles:
            if query in (profile.id, profile.peer_id):
                return profile
            if profile.profile_name.lower() == query.lower():
                return profile
        return None

    def create_profile(
        self,
        profile_name: str,
        peer_id: str,
        profile_id: str,
        extension_path: str | None = None,
    ) -> Profile:
        """Append a new profile; the first profile ever created becomes active."""
        config = self.load()
        profile = Profile(
            id=profile_id,
            profile_name=profile_name,
            peer_id=peer_id,
            extension_path=extension_path,
        )
        config.profiles.append(profile)
        if len(config.profiles) == 1:
            config.active_profile_id = profile.id
            logger.info(f"First profile {profile.id} - auto-activated")
        else:
            logger.info(f"Additional profile {profile.id} - not activated")
        self.save(config)
        return profile

    def select_profile(self, profile_id: str) -> bool:
        """Mark ``profile_id`` active. Returns False if it does not exist."""
        config = self.load()
        if config.get_profile(profile_id) is None:
            return False
        config.active_profile_id = profile_id
        self.save(config)
        return True

    def update_profile_name(self, profile_id: str, profile_name: str) -> bool:
        """Rename a profile. Returns False if it does not exist."""
        config = self.load()
        profile = config.get_profile(profile_id)
        if profile is None:
            return False
        profile.profile_name = profile_name
        self.save(config)
        return True

    def remove_profile(self, profile_id: str) -> bool:
        """Delete a profile; if it was active, the first remaining one takes over."""
        config = self.load()
        remaining = [p for p in config.profiles if p.id != profile_id]
        if len(remaining) == len(config.profiles):
            return False
        config.profiles = remaining
        if config.active_profile_id == profile_id:
            config.active_profile_id = remaining[0].id if remaining else None
        self.save(config)
        return True

    # -------------------------------------------------------------------------
    # Tab state
    # -------------------------------------------------------------------------

    def get_active_tab_id(self) -> int | None:
        return self.load().active_tab_id

    def set_active_tab_id(self, tab_id: int) -> None:
        config = self.load()
        config.active_tab_id = tab_id
        self.save(config)

    def clear_active_tab_id(self) -> None:
        config = self.load()
        config.active_tab_id = None
        self.save(config)
