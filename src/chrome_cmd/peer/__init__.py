"""Peer side of the native-messaging channel (test and debugging peer)."""

from .connection import (
    ConnectionState,
    InstallationIdStore,
    PeerConnection,
    SubprocessConnector,
    answer_ping,
    backoff_delay,
)

__all__ = [
    "ConnectionState",
    "InstallationIdStore",
    "PeerConnection",
    "SubprocessConnector",
    "answer_ping",
    "backoff_delay",
]
