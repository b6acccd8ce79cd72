"""REGISTER handshake: bind a peer installation to a Profile.

The peer sends one REGISTER message right after connecting (and again after
every reconnect). Handling is idempotent: the profile is resolved-or-created
by ``installationId`` and the registry entry for that profile is overwritten.
"""

import os
from typing import Any

import structlog

from ..store.profiles import ConfigStore, Profile
from ..store.registry import RegistryStore
from .errors import RegistrationError, failure_reply, success_reply

logger = structlog.get_logger(__name__)

REGISTER_COMMAND = "REGISTER"
DEFAULT_PROFILE_NAME = "Unknown"


def is_register_message(message: dict[str, Any]) -> bool:
    """Whether ``message`` is a REGISTER command (case-insensitive)."""
    command = message.get("command")
    return isinstance(command, str) and command.upper() == REGISTER_COMMAND


class RegistrationHandler:
    """Processes REGISTER messages for one bridge process."""

    def __init__(
        self,
        config_store: ConfigStore,
        registry: RegistryStore,
        port: int,
        pid: int | None = None,
    ) -> None:
        """Initialize RegistrationHandler.

        Args:
            config_store: Durable profile configuration
            registry: Shared registry of running bridges
            port: This bridge's negotiated HTTP port
            pid: This bridge's process id (default: current process)
        """
        self.config_store = config_store
        self.registry = registry
        self.port = port
        self.pid = pid if pid is not None else os.getpid()
        self.profile_id: str | None = None

    def handle(self, message: dict[str, Any]) -> dict[str, Any]:
        """Handle a REGISTER message and build the reply to send to the peer."""
        request_id = message.get("id")
        try:
            profile = self.register(message.get("data") or {})
        except RegistrationError as e:
            logger.error(f"Registration rejected: {e.message}")
            return failure_reply(request_id, e.message)
        except (OSError, ValueError) as e:
            logger.exception(f"Registration failed: {e}")
            return failure_reply(request_id, f"Registration failed: {e}")

        logger.info(f"Registration complete for profile {profile.id} on port {self.port}")
        return success_reply(request_id, {"profileId": profile.id, "port": self.port})

    def register(self, data: dict[str, Any]) -> Profile:
        """Resolve or create the profile and publish this bridge in the registry.

        Raises:
            RegistrationError: If a required field is missing
        """
        if not isinstance(data, dict):
            raise RegistrationError(message="REGISTER data must be an object")

        installation_id = data.get("installationId")
        peer_id = data.get("peerId") or data.get("extensionId")
        profile_name = data.get("profileName")

        logger.info(
            "Processing REGISTER",
            installation_id=installation_id,
            peer_id=peer_id,
            profile_name=profile_name,
        )

        if not installation_id:
            raise RegistrationError(message="installationId is required")
        installation_id = str(installation_id)

        config = self.config_store.load()
        profile = config.get_profile(installation_id)

        if profile is None:
            if not peer_id:
                raise RegistrationError(message="peerId is required to create a profile")
            profile = self.config_store.create_profile(
                profile_name=str(profile_name or DEFAULT_PROFILE_NAME),
                peer_id=str(peer_id),
                profile_id=installation_id,
            )
        else:
            logger.info(f"Found existing profile {profile.id}")
            if profile_name and profile.profile_name != profile_name:
                logger.info(f'Updating profile name: "{profile.profile_name}" -> "{profile_name}"')
                profile.profile_name = str(profile_name)
                self.config_store.update_profile_name(profile.id, profile.profile_name)

        self.registry.register(
            profile_id=profile.id,
            port=self.port,
            pid=self.pid,
            peer_id=profile.peer_id,
            profile_name=profile.profile_name,
        )
        self.profile_id = profile.id
        return profile
