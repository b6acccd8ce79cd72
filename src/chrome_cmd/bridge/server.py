"""BridgeServer - HTTP control endpoint facing the CLI.

Accepts ``POST /command`` from the CLI, forwards the message to the peer
over the framed channel and answers when the peer's reply with the same id
arrives, or with a timeout error when the deadline fires first.
"""

import asyncio
import uuid
from collections.abc import Callable
from typing import Any, Protocol

import structlog
from aiohttp import web

from .errors import (
    BridgeError,
    ChannelClosedError,
    DuplicateRequestError,
    InvalidRequestError,
    RouteNotFoundError,
)
from .pending import PendingTable, Reply
from .ports import DEFAULT_HOST

logger = structlog.get_logger(__name__)

DEFAULT_COMMAND_TIMEOUT = 10.0
CAPTURE_TIMEOUT = 600.0

# Commands that legitimately run for minutes (full-page captures)
LONG_RUNNING_COMMANDS: dict[str, float] = {
    "capture_screenshot": CAPTURE_TIMEOUT,
}


class MessageSink(Protocol):
    """Where forwarded requests go (the peer channel)."""

    def send(self, message: dict[str, Any]) -> None: ...


def command_deadline(
    command: str | None,
    default: float = DEFAULT_COMMAND_TIMEOUT,
    overrides: dict[str, float] | None = None,
) -> float:
    """Deadline in seconds for ``command``."""
    table = LONG_RUNNING_COMMANDS if overrides is None else overrides
    if command and command in table:
        return table[command]
    return default


def new_request_id() -> str:
    return uuid.uuid4().hex


class BridgeServer:
    """HTTP control server bridging CLI requests to the peer."""

    def __init__(
        self,
        channel: MessageSink,
        pending: PendingTable | None = None,
        host: str = DEFAULT_HOST,
        default_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        long_running: dict[str, float] | None = None,
        id_factory: Callable[[], str] = new_request_id,
    ):
        """Initialize BridgeServer.

        Args:
            channel: Framed channel to the peer
            pending: Pending-request table shared with the channel read path
            host: Interface to listen on (localhost only)
            default_timeout: Deadline for ordinary commands (seconds)
            long_running: Per-command deadline overrides
            id_factory: Generates correlation ids for requests without one
        """
        self.channel = channel
        self.pending = pending if pending is not None else PendingTable()
        self.host = host
        self.default_timeout = default_timeout
        self.long_running = dict(LONG_RUNNING_COMMANDS if long_running is None else long_running)
        self.id_factory = id_factory
        self.port: int | None = None

        self.app = web.Application()
        self.app.router.add_post("/command", self.handle_command)
        self.app.router.add_get("/ping", self.handle_ping)
        self.app.router.add_route("*", "/{tail:.*}", self.handle_not_found)

        self._runner: web.AppRunner | None = None

    async def start(self, port: int) -> None:
        """Start listening on ``port``."""
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, port)
        await site.start()
        # Port 0 binds an ephemeral port
        self.port = site._server.sockets[0].getsockname()[1] if port == 0 else port
        logger.info(f"HTTP server running on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        logger.info("HTTP server stopped")

    def deadline_for(self, command: str | None) -> float:
        return command_deadline(command, self.default_timeout, self.long_running)

    async def handle_command(self, request: web.Request) -> web.Response:
        """Handle ``POST /command``: forward to the peer and await its reply."""
        try:
            body = await request.json()
        except ValueError:
            logger.warning("Rejected /command with unparseable body")
            return self._error_response(InvalidRequestError())

        if not isinstance(body, dict):
            logger.warning("Rejected /command with non-object body")
            return self._error_response(InvalidRequestError())

        request_id = body.get("id")
        request_id = str(request_id) if request_id not in (None, "") else self.id_factory()
        command = body.get("command")
        message = {**body, "id": request_id}

        logger.info(f"Received command: {command} id={request_id}")

        sink: asyncio.Future[Reply] = asyncio.get_running_loop().create_future()
        try:
            self.pending.insert(request_id, sink, self.deadline_for(command), command=command)
        except DuplicateRequestError as e:
            logger.warning(f"Rejected duplicate request id {request_id}")
            return self._error_response(e)

        try:
            self.channel.send(message)
        except ChannelClosedError as e:
            # Left pending: the deadline produces the reply
            logger.warning(f"Could not forward {request_id}: {e}")

        reply = await sink
        return web.json_response(reply.body, status=reply.status)

    async def handle_ping(self, request: web.Request) -> web.Response:
        """Handle ``GET /ping`` liveness probes."""
        return web.json_response({"status": "ok"})

    async def handle_not_found(self, request: web.Request) -> web.Response:
        """Any other method or path."""
        logger.debug(f"No route for {request.method} {request.path}")
        return self._error_response(RouteNotFoundError())

    def deliver(self, message: dict[str, Any]) -> bool:
        """Route a peer reply to its waiting caller.

        Messages carrying a ``command`` are requests from the peer (keepalives),
        never replies, even when their id collides with a pending one.

        Returns:
            True if the reply matched a pending request
        """
        if "command" in message:
            return False
        matched = self.pending.resolve(message.get("id"), message)
        if matched:
            logger.info(f"Sent response to CLI for id={message.get('id')}")
        return matched

    def _error_response(self, error: BridgeError) -> web.Response:
        return web.json_response(error.to_response(), status=error.status)
