"""HTTP client for the local bridge.

The CLI is a thin client: it finds the bridge serving the active profile in
the shared registry, checks that it is alive, and sends exactly one command.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from .bridge.errors import HTTP_GATEWAY_TIMEOUT, TIMEOUT_MESSAGE
from .bridge.server import command_deadline
from .config import Settings
from .store.profiles import ConfigStore, Profile
from .store.registry import BridgeInfo, RegistryStore, is_process_running

logger = structlog.get_logger(__name__)

PING_ATTEMPTS = 10
PING_DELAY = 0.3
PING_TIMEOUT = 0.5

# Added to the bridge's own deadline so the bridge answers first
RESPONSE_MARGIN = 5.0


class BridgeClientError(Exception):
    """Error talking to the bridge."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass
class BridgeTarget:
    """The bridge a command will be sent to."""

    profile: Profile
    info: BridgeInfo
    host: str

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.info.port}"


class BridgeClient:
    """HTTP client for the bridge serving the active profile.

    Use as an async context manager::

        async with BridgeClient() as client:
            result = await client.send_command("list_tabs")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        config_store: ConfigStore | None = None,
        registry: RegistryStore | None = None,
        ping_attempts: int = PING_ATTEMPTS,
        ping_delay: float = PING_DELAY,
        ping_timeout: float = PING_TIMEOUT,
    ):
        """Initialize client.

        Args:
            settings: Host and default timeout
            config_store: Profile configuration (active profile)
            registry: Shared bridge registry
            ping_attempts: Liveness probes before giving up
            ping_delay: Seconds between liveness probes
            ping_timeout: Timeout of a single liveness probe
        """
        self.settings = settings or Settings()
        self.config_store = config_store or ConfigStore()
        self.registry = registry or RegistryStore()
        self.ping_attempts = ping_attempts
        self.ping_delay = ping_delay
        self.ping_timeout = ping_timeout

        self.target: BridgeTarget | None = None
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "BridgeClient":
        """Resolve the bridge and open the HTTP client."""
        self.target = self.resolve_target()
        self._client = httpx.AsyncClient(
            base_url=self.target.base_url,
            headers={"Content-Type": "application/json"},
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise BridgeClientError("Client not initialized. Use 'async with' context.")
        return self._client

    def resolve_target(self) -> BridgeTarget:
        """Find the running bridge for the active profile.

        Raises:
            BridgeClientError: If there is no active profile or no live bridge for it
        """
        profile = self.config_store.get_active_profile()
        if profile is None:
            raise BridgeClientError(
                "No active profile. Open the browser with the extension installed, "
                "or select one with: chrome-cmd profile select"
            )

        info = self.registry.get(profile.id)
        if info is None:
            raise BridgeClientError(
                f"Profile '{profile.profile_name}' is not connected. "
                "Is the browser open with the extension enabled?"
            )

        if not is_process_running(info.pid):
            raise BridgeClientError(
                f"Bridge for profile '{profile.profile_name}' is not running "
                f"(stale PID {info.pid}). Run: chrome-cmd bridge cleanup"
            )

        return BridgeTarget(profile=profile, info=info, host=self.settings.host)

    def request_timeout(self, command: str) -> float:
        """Client-side timeout for ``command``, never shorter than the bridge deadline."""
        deadline = command_deadline(command)
        return max(deadline + RESPONSE_MARGIN, self.settings.timeout)

    async def probe(self) -> bool:
        """Single ``GET /ping``; True if the bridge answered."""
        client = self._ensure_client()
        try:
            response = await client.get("/ping", timeout=self.ping_timeout)
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    async def wait_for_bridge(self) -> None:
        """Probe ``/ping`` until the bridge answers.

        Raises:
            BridgeClientError: If every probe failed
        """
        for attempt in range(self.ping_attempts):
            if await self.probe():
                return
            logger.debug(f"Bridge ping failed (attempt {attempt + 1}/{self.ping_attempts})")
            if attempt < self.ping_attempts - 1:
                await asyncio.sleep(self.ping_delay)

        raise BridgeClientError(
            f"Bridge at {self.target.base_url} is not responding. "
            "Is the browser open with the extension enabled?"
        )

    async def send_command(
        self,
        command: str,
        data: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> Any:
        """Send one command to the peer through the bridge.

        Args:
            command: Command name
            data: Command arguments
            request_id: Correlation id (generated by the bridge when omitted)

        Returns:
            The peer's ``result``

        Raises:
            BridgeClientError: On connection errors, timeouts or a failure reply
        """
        await self.wait_for_bridge()
        body = await self._post_command(command, data, request_id)
        if body.get("success"):
            return body.get("result")
        raise BridgeClientError(str(body.get("error") or "Command failed"))

    async def ping(self) -> dict[str, Any]:
        """Round-trip a ``ping`` command through the bridge to the peer."""
        started = time.monotonic()
        result = await self.send_command("ping")
        return {
            "profile": self.target.profile.profile_name,
            "port": self.target.info.port,
            "pid": self.target.info.pid,
            "latency_ms": round((time.monotonic() - started) * 1000, 1),
            "result": result,
        }

    async def _post_command(
        self,
        command: str,
        data: dict[str, Any] | None,
        request_id: str | None,
    ) -> dict[str, Any]:
        client = self._ensure_client()
        payload: dict[str, Any] = {"command": command}
        if data:
            payload["data"] = data
        if request_id:
            payload["id"] = request_id

        timeout = self.request_timeout(command)
        logger.debug(f"POST /command {command} timeout={timeout}s")
        try:
            response = await client.post("/command", json=payload, timeout=timeout)
        except httpx.ConnectError:
            raise BridgeClientError(
                f"Cannot connect to bridge at {self.target.base_url}\n"
                "Is the browser open with the extension enabled?"
            )
        except httpx.TimeoutException:
            raise BridgeClientError(f"Request timed out after {timeout}s")

        if response.status_code == HTTP_GATEWAY_TIMEOUT:
            raise BridgeClientError(TIMEOUT_MESSAGE, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            raise BridgeClientError(
                f"Invalid response from bridge (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        if not isinstance(body, dict):
            raise BridgeClientError("Invalid response from bridge", status_code=response.status_code)

        if response.status_code != 200 and body.get("success") is not False:
            raise BridgeClientError(
                f"Bridge returned HTTP {response.status_code}", status_code=response.status_code
            )
        return body
