"""BridgeProcess - Manages bridge startup, message dispatch and shutdown.

Handles:
- Port negotiation and HTTP server startup (fatal on failure)
- Reading the peer channel and routing each message
- Registry cleanup on EOF, SIGINT or SIGTERM
"""

import asyncio
import contextlib
import os
import signal
from typing import Any, Optional

import structlog

from ..config import Settings
from ..store.profiles import ConfigStore
from ..store.registry import RegistryStore
from .channel import PeerChannel
from .errors import (
    HTTP_SERVICE_UNAVAILABLE,
    SHUTDOWN_MESSAGE,
    ChannelClosedError,
    NoAvailablePortError,
)
from .pending import PendingTable, Reply
from .ports import find_available_port
from .registration import RegistrationHandler, is_register_message
from .server import BridgeServer

logger = structlog.get_logger(__name__)

KEEPALIVE_COMMAND = "ping"


class BridgeProcess:
    """One bridge instance: a peer channel, an HTTP server and a registry entry."""

    def __init__(
        self,
        channel: PeerChannel,
        settings: Settings | None = None,
        config_store: ConfigStore | None = None,
        registry: RegistryStore | None = None,
        pid: int | None = None,
    ):
        """Initialize BridgeProcess.

        Args:
            channel: Framed channel to the peer
            settings: Host and port range (default: built-in defaults)
            config_store: Profile configuration store
            registry: Shared bridge registry
            pid: Process id published in the registry (default: os.getpid())
        """
        self.channel = channel
        self.settings = settings or Settings()
        self.config_store = config_store or ConfigStore()
        self.registry = registry or RegistryStore()
        self.pid = pid if pid is not None else os.getpid()

        self.pending = PendingTable()
        self.server: Optional[BridgeServer] = None
        self.registration: Optional[RegistrationHandler] = None
        self.port: Optional[int] = None

        self._shutdown_event = asyncio.Event()
        self._is_running = False
        self._stopped = False
        self._signals: list[signal.Signals] = []

    @property
    def is_running(self) -> bool:
        """Whether the bridge is serving requests."""
        return self._is_running

    @property
    def profile_id(self) -> Optional[str]:
        """Profile bound by the last successful REGISTER."""
        return self.registration.profile_id if self.registration else None

    async def startup(self) -> int:
        """Negotiate a port and start the HTTP server.

        Returns:
            The port the server is listening on

        Raises:
            NoAvailablePortError: If the configured range is exhausted
            OSError: If the server cannot bind the negotiated port
        """
        logger.info("Starting bridge...")

        port = find_available_port(
            self.settings.port_start,
            self.settings.port_end,
            self.settings.host,
        )
        self.server = BridgeServer(
            channel=self.channel,
            pending=self.pending,
            host=self.settings.host,
        )
        await self.server.start(port)
        self.port = self.server.port

        self.registration = RegistrationHandler(
            config_store=self.config_store,
            registry=self.registry,
            port=self.port,
            pid=self.pid,
        )
        self._is_running = True

        logger.info("Waiting for REGISTER command from peer...")
        return self.port

    def dispatch(self, message: dict[str, Any]) -> None:
        """Route one inbound message from the peer."""
        if is_register_message(message):
            reply = self.registration.handle(message)
            try:
                self.channel.send(reply)
            except ChannelClosedError as e:
                logger.warning(f"Could not send REGISTER reply: {e}")
            return

        if self.server.deliver(message):
            return

        if message.get("command") == KEEPALIVE_COMMAND:
            logger.debug(f"Keepalive from peer id={message.get('id')}")
            if self.profile_id:
                self.registry.touch(self.profile_id)
            return

        logger.warning(f"Dropping unrecognized message id={message.get('id')}")

    async def run(self) -> None:
        """Serve until the peer closes the channel or shutdown is requested."""
        reader_task = asyncio.create_task(self._read_loop())
        stop_task = asyncio.create_task(self._shutdown_event.wait())

        done, _ = await asyncio.wait({reader_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

        for task in (reader_task, stop_task):
            if task not in done:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if reader_task in done and not reader_task.cancelled() and reader_task.exception():
            logger.error(f"Peer channel failed: {reader_task.exception()}")

    async def _read_loop(self) -> None:
        async for message in self.channel.messages():
            logger.debug(f"Received from peer: {message}")
            try:
                self.dispatch(message)
            except Exception as e:
                logger.exception(f"Error handling peer message: {e}")

    def request_shutdown(self, sig: Optional[signal.Signals] = None) -> None:
        """Ask ``run`` to return (safe to call from a signal handler)."""
        if sig:
            logger.info(f"Received signal {sig.name}, shutting down...")
        self._shutdown_event.set()

    def install_signal_handlers(self) -> None:
        """Route SIGTERM/SIGINT to ``request_shutdown``."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.request_shutdown, sig)
            self._signals.append(sig)

    def remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        while self._signals:
            loop.remove_signal_handler(self._signals.pop())

    async def shutdown(self) -> None:
        """Remove this bridge's registry entry and stop serving."""
        if self._stopped:
            return
        self._stopped = True
        self._is_running = False
        logger.info("Shutting down...")
        self.remove_signal_handlers()

        if self.profile_id:
            try:
                self.registry.unregister(self.profile_id, pid=self.pid)
            except OSError as e:
                logger.error(f"Failed to unregister profile {self.profile_id}: {e}")

        drained = self.pending.drain(
            Reply(
                status=HTTP_SERVICE_UNAVAILABLE,
                body={"success": False, "error": SHUTDOWN_MESSAGE},
            )
        )
        if drained:
            logger.info(f"Failed {drained} in-flight requests")

        if self.server:
            await self.server.stop()

        self.channel.close()
        logger.info("Bridge shutdown complete")


async def run_bridge_host(settings: Settings) -> int:
    """Entry point for the native-messaging host.

    Returns:
        Process exit code
    """
    channel = await PeerChannel.open_stdio()
    bridge = BridgeProcess(channel=channel, settings=settings)

    try:
        await bridge.startup()
    except NoAvailablePortError as e:
        logger.error(f"FATAL: {e.message}")
        channel.close()
        return 1
    except OSError as e:
        logger.error(f"FATAL: Failed to start HTTP server: {e}")
        channel.close()
        return 1

    bridge.install_signal_handlers()
    try:
        await bridge.run()
    finally:
        await bridge.shutdown()
    return 0
