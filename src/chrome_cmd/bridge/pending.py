"""Pending-request table: correlation id -> waiting HTTP reply.

The table is the only shared mutable state in the bridge. It is touched
exclusively from the event loop thread, so it needs no locking. Every entry
is settled exactly once: either ``resolve`` (peer answered) or ``expire``
(deadline fired) removes it, and whichever runs second finds nothing.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import structlog

from .errors import HTTP_GATEWAY_TIMEOUT, HTTP_OK, CommandTimeoutError, DuplicateRequestError

logger = structlog.get_logger(__name__)


@dataclass
class Reply:
    """Outcome delivered to a waiting HTTP handler."""

    status: int
    body: dict[str, Any]


@dataclass
class PendingRequest:
    """One in-flight request awaiting its reply."""

    request_id: str
    sink: "asyncio.Future[Reply]"
    deadline: float
    command: str | None = None
    created_at: float = field(default_factory=time.monotonic)
    timer: asyncio.TimerHandle | None = None

    def settle(self, reply: Reply) -> bool:
        """Write the reply to the sink unless the caller already went away."""
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        if self.sink.done():
            return False
        self.sink.set_result(reply)
        return True


class PendingTable:
    """Map of correlation ids to pending requests with deadline timers."""

    def __init__(self) -> None:
        self._entries: dict[str, PendingRequest] = {}

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def insert(
        self,
        request_id: str,
        sink: "asyncio.Future[Reply]",
        deadline: float,
        command: str | None = None,
    ) -> PendingRequest:
        """Register a pending request and arm its deadline timer.

        Args:
            request_id: Correlation id forwarded to the peer
            sink: Future the HTTP handler awaits
            deadline: Seconds until the request times out
            command: Command name (for logging)

        Raises:
            DuplicateRequestError: If ``request_id`` is already pending
        """
        if request_id in self._entries:
            raise DuplicateRequestError()

        entry = PendingRequest(
            request_id=request_id,
            sink=sink,
            deadline=deadline,
            command=command,
        )
        loop = asyncio.get_running_loop()
        entry.timer = loop.call_later(deadline, self.expire, request_id)
        self._entries[request_id] = entry
        logger.debug(f"Pending request {request_id} ({command}) deadline={deadline}s")
        return entry

    def resolve(self, request_id: Any, message: dict[str, Any]) -> bool:
        """Deliver the peer's reply for ``request_id``.

        Returns:
            True if an entry existed and was removed, False otherwise
        """
        if not isinstance(request_id, (str, int)):
            return False
        entry = self._entries.pop(str(request_id), None)
        if entry is None:
            return False
        elapsed = time.monotonic() - entry.created_at
        logger.debug(f"Resolved request {request_id} after {elapsed:.3f}s")
        entry.settle(Reply(status=HTTP_OK, body=message))
        return True

    def expire(self, request_id: str) -> bool:
        """Time out ``request_id`` if it is still pending.

        Returns:
            True if the entry was still present and a timeout reply was produced
        """
        entry = self._entries.pop(request_id, None)
        if entry is None:
            return False
        logger.warning(f"Request {request_id} ({entry.command}) timed out after {entry.deadline}s")
        error = CommandTimeoutError()
        entry.settle(Reply(status=HTTP_GATEWAY_TIMEOUT, body=error.to_response()))
        return True

    def drain(self, reply: Reply) -> int:
        """Settle every outstanding entry with ``reply`` (used at shutdown).

        Returns:
            Number of entries drained
        """
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            entry.settle(reply)
        return len(entries)
