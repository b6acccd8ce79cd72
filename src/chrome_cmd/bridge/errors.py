"""Error taxonomy for the bridge process.

Caller-visible faults are rendered as structured JSON bodies
(``{"success": false, "error": ...}``) with an HTTP status; internal faults
(bad frames, unmatched ids) are logged and never reach a caller.
"""

from dataclasses import dataclass, field
from typing import Any

# HTTP status codes used by the control server
HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_SERVICE_UNAVAILABLE = 503
HTTP_GATEWAY_TIMEOUT = 504

# Error strings shared with the CLI client
TIMEOUT_MESSAGE = "Timeout"
INVALID_JSON_MESSAGE = "Invalid JSON"
NOT_FOUND_MESSAGE = "Not found"
DUPLICATE_ID_MESSAGE = "Duplicate request id"
SHUTDOWN_MESSAGE = "Bridge shutting down"


@dataclass
class BridgeError(Exception):
    """Base error class for bridge errors."""

    message: str
    status: int = HTTP_BAD_REQUEST
    data: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_response(self) -> dict[str, Any]:
        """Convert to the JSON body returned to HTTP callers."""
        body: dict[str, Any] = {"success": False, "error": self.message}
        if self.data:
            body["data"] = self.data
        return body


@dataclass
class InvalidRequestError(BridgeError):
    """Request body could not be parsed as a JSON object (HTTP 400)."""

    message: str = INVALID_JSON_MESSAGE
    status: int = HTTP_BAD_REQUEST


@dataclass
class DuplicateRequestError(BridgeError):
    """Client-supplied id collides with a pending request (HTTP 409)."""

    message: str = DUPLICATE_ID_MESSAGE
    status: int = HTTP_CONFLICT


@dataclass
class CommandTimeoutError(BridgeError):
    """Peer did not answer before the deadline (HTTP 504)."""

    message: str = TIMEOUT_MESSAGE
    status: int = HTTP_GATEWAY_TIMEOUT


@dataclass
class RouteNotFoundError(BridgeError):
    """Unknown method or path (HTTP 404)."""

    message: str = NOT_FOUND_MESSAGE
    status: int = HTTP_NOT_FOUND


@dataclass
class RegistrationError(BridgeError):
    """REGISTER message could not be honoured.

    Sent back to the peer as a failure reply; never crashes the bridge.
    """

    message: str = "Registration failed"


@dataclass
class NoAvailablePortError(BridgeError):
    """Every port in the configured range is occupied.

    Fatal at startup: the bridge exits non-zero before serving anything.
    """

    message: str = "No available ports"
    start: int = 0
    end: int = 0


class ChannelClosedError(Exception):
    """The framed stdio channel reached EOF or broke."""


def failure_reply(request_id: Any, error: str) -> dict[str, Any]:
    """Build a failure message addressed to ``request_id``."""
    return {"id": request_id, "success": False, "error": error}


def success_reply(request_id: Any, result: Any) -> dict[str, Any]:
    """Build a success message addressed to ``request_id``."""
    return {"id": request_id, "success": True, "result": result}
