"""PeerConnection - the peer side of the native-messaging channel.

Handles:
- Connecting through a pluggable transport (subprocess, test pipes)
- One REGISTER per connection, sent after a short settle delay
- Keepalive pings while connected
- Reconnecting with capped exponential backoff
- Answering inbound commands through a handler coroutine
"""

import asyncio
import contextlib
import uuid
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from ..bridge.channel import FrameWriter, PeerChannel
from ..bridge.errors import ChannelClosedError, failure_reply, success_reply
from ..bridge.registration import REGISTER_COMMAND
from ..shared import paths

logger = structlog.get_logger(__name__)

REGISTER_DELAY = 0.1
KEEPALIVE_INTERVAL = 30.0
BACKOFF_BASE = 1.0
BACKOFF_CAP = 30.0

Connector = Callable[[], Awaitable[tuple[asyncio.StreamReader, FrameWriter]]]
Handler = Callable[[dict[str, Any]], Awaitable[Any]]


class ConnectionState(str, Enum):
    """Lifecycle of a peer connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def backoff_delay(attempt: int, base: float = BACKOFF_BASE, cap: float = BACKOFF_CAP) -> float:
    """Delay before reconnect ``attempt`` (1-based): base, 2*base, 4*base ... capped."""
    if attempt < 1:
        return 0.0
    return min(base * 2 ** (attempt - 1), cap)


class InstallationIdStore:
    """Persisted random id identifying this peer installation."""

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path else None

    @property
    def path(self) -> Path:
        return self._path or paths.CONFIG_DIR / "installation_id"

    def get_or_create(self) -> str:
        """Return the stored id, generating and saving one on first use."""
        try:
            existing = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            existing = ""
        if existing:
            return existing

        installation_id = str(uuid.uuid4())
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(installation_id + "\n", encoding="utf-8")
        logger.info(f"Generated installation id {installation_id}")
        return installation_id


async def answer_ping(message: dict[str, Any]) -> Any:
    """Default handler: answers ``ping`` and rejects everything else."""
    command = message.get("command")
    if command == "ping":
        return {"status": "ok"}
    raise ValueError(f"Unknown command: {command}")


class SubprocessConnector:
    """Launch a bridge subprocess and talk to it over its stdin/stdout."""

    def __init__(self, argv: list[str], env: dict[str, str] | None = None) -> None:
        self.argv = argv
        self.env = env
        self.process: asyncio.subprocess.Process | None = None

    async def __call__(self) -> tuple[asyncio.StreamReader, FrameWriter]:
        await self.close()
        self.process = await asyncio.create_subprocess_exec(
            *self.argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            env=self.env,
        )
        logger.info(f"Launched bridge subprocess pid={self.process.pid}")
        return self.process.stdout, self.process.stdin

    async def close(self) -> None:
        """Terminate the subprocess if it is still running."""
        process, self.process = self.process, None
        if process is None or process.returncode is not None:
            return
        if process.stdin:
            process.stdin.close()
        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            process.terminate()
            await process.wait()


class PeerConnection:
    """Maintains a registered connection to a bridge, reconnecting on loss."""

    def __init__(
        self,
        connect: Connector,
        peer_id: str,
        installation_id: str,
        profile_name: str | None = None,
        handler: Handler = answer_ping,
        register_delay: float = REGISTER_DELAY,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
        backoff_base: float = BACKOFF_BASE,
        backoff_cap: float = BACKOFF_CAP,
        max_attempts: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize PeerConnection.

        Args:
            connect: Coroutine returning a (reader, writer) pair to a bridge
            peer_id: Identity sent as ``peerId`` in REGISTER
            installation_id: Stable per-installation id
            profile_name: Human-readable profile name (optional)
            handler: Coroutine producing the result for each inbound command
            register_delay: Seconds between connecting and sending REGISTER
            keepalive_interval: Seconds between keepalive pings
            backoff_base: First reconnect delay in seconds
            backoff_cap: Maximum reconnect delay in seconds
            max_attempts: Give up after this many consecutive failures (None = never)
            sleep: Sleep coroutine used for reconnect delays
        """
        self.connect = connect
        self.peer_id = peer_id
        self.installation_id = installation_id
        self.profile_name = profile_name
        self.handler = handler
        self.register_delay = register_delay
        self.keepalive_interval = keepalive_interval
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self.max_attempts = max_attempts
        self._sleep = sleep

        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self.connections = 0
        self.channel: PeerChannel | None = None
        self.registration: dict[str, Any] | None = None
        self.registered = asyncio.Event()

        self._register_id: str | None = None
        self._keepalive_count = 0
        self._stopping = False
        self._serving: asyncio.Future | None = None

    def register_message(self) -> dict[str, Any]:
        """Build the REGISTER message for a new connection."""
        data: dict[str, Any] = {
            "peerId": self.peer_id,
            "installationId": self.installation_id,
        }
        if self.profile_name:
            data["profileName"] = self.profile_name
        self._register_id = f"register_{uuid.uuid4().hex}"
        return {"command": REGISTER_COMMAND, "id": self._register_id, "data": data}

    def keepalive_message(self) -> dict[str, Any]:
        self._keepalive_count += 1
        return {"command": "ping", "id": f"keepalive_{self._keepalive_count}"}

    async def run(self) -> None:
        """Connect, serve and reconnect until ``stop`` or ``max_attempts``."""
        while not self._stopping:
            self.state = ConnectionState.CONNECTING
            try:
                reader, writer = await self.connect()
            except OSError as e:
                logger.warning(f"Connection failed: {e}")
            else:
                self.attempts = 0
                self.connections += 1
                self._serving = asyncio.ensure_future(self._serve(PeerChannel(reader, writer)))
                try:
                    await self._serving
                except asyncio.CancelledError:
                    if not self._stopping:
                        raise
                finally:
                    self._serving = None

            self.state = ConnectionState.DISCONNECTED
            if self._stopping:
                break

            self.attempts += 1
            if self.max_attempts is not None and self.attempts > self.max_attempts:
                logger.error(f"Giving up after {self.max_attempts} reconnect attempts")
                break

            delay = backoff_delay(self.attempts, self.backoff_base, self.backoff_cap)
            logger.info(f"Reconnecting in {delay}s (attempt {self.attempts})")
            await self._sleep(delay)

    def stop(self) -> None:
        """Stop reconnecting and close the current channel."""
        self._stopping = True
        if self._serving:
            self._serving.cancel()

    async def _serve(self, channel: PeerChannel) -> None:
        self.channel = channel
        self.state = ConnectionState.CONNECTED
        self.registered.clear()
        logger.info("Connected to bridge")

        background = [
            asyncio.create_task(self._register_later(channel)),
            asyncio.create_task(self._keepalive(channel)),
        ]
        try:
            async for message in channel.messages():
                await self._on_message(channel, message)
        finally:
            for task in background:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            channel.close()
            self.channel = None
            logger.info("Disconnected from bridge")

    async def _register_later(self, channel: PeerChannel) -> None:
        await asyncio.sleep(self.register_delay)
        try:
            channel.send(self.register_message())
        except ChannelClosedError:
            return
        logger.info("Sent REGISTER")

    async def _keepalive(self, channel: PeerChannel) -> None:
        while True:
            await asyncio.sleep(self.keepalive_interval)
            try:
                channel.send(self.keepalive_message())
            except ChannelClosedError:
                return

    async def _on_message(self, channel: PeerChannel, message: dict[str, Any]) -> None:
        request_id = message.get("id")

        if "command" not in message:
            if request_id is not None and request_id == self._register_id:
                self.registration = message
                if message.get("success"):
                    logger.info(f"Registered: {message.get('result')}")
                    self.registered.set()
                else:
                    logger.error(f"Registration failed: {message.get('error')}")
            else:
                logger.debug(f"Ignoring reply id={request_id}")
            return

        try:
            result = await self.handler(message)
        except Exception as e:
            logger.warning(f"Command {message.get('command')} failed: {e}")
            reply = failure_reply(request_id, str(e))
        else:
            reply = success_reply(request_id, result)

        try:
            channel.send(reply)
        except ChannelClosedError:
            logger.warning(f"Channel closed before reply to {request_id}")
