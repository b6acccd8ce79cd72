"""Bridge process: framed peer channel on stdio, HTTP control server on localhost."""

from .channel import PeerChannel
from .codec import FrameDecoder, decode_payload, encode
from .errors import (
    BridgeError,
    ChannelClosedError,
    CommandTimeoutError,
    DuplicateRequestError,
    InvalidRequestError,
    NoAvailablePortError,
    RegistrationError,
    RouteNotFoundError,
)
from .lifecycle import BridgeProcess, run_bridge_host
from .pending import PendingRequest, PendingTable, Reply
from .ports import find_available_port, is_port_free
from .registration import RegistrationHandler, is_register_message
from .server import BridgeServer, command_deadline

__all__ = [
    "BridgeError",
    "BridgeProcess",
    "BridgeServer",
    "ChannelClosedError",
    "CommandTimeoutError",
    "DuplicateRequestError",
    "FrameDecoder",
    "InvalidRequestError",
    "NoAvailablePortError",
    "PeerChannel",
    "PendingRequest",
    "PendingTable",
    "RegistrationError",
    "RegistrationHandler",
    "Reply",
    "RouteNotFoundError",
    "command_deadline",
    "decode_payload",
    "encode",
    "find_available_port",
    "is_port_free",
    "is_register_message",
    "run_bridge_host",
]
