"""Framed stdio channel to the peer (browser extension).

The browser launches the bridge with the peer on the other end of
stdin/stdout. Reads are fed through a ``FrameDecoder``; writes are
synchronous appends to the write transport so messages leave in the order
they were sent.
"""

import asyncio
import sys
from collections.abc import AsyncIterator
from typing import Any, Protocol

import structlog

from .codec import FrameDecoder, encode
from .errors import ChannelClosedError

logger = structlog.get_logger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class FrameWriter(Protocol):
    """Anything frames can be written to (transport, StreamWriter, test double)."""

    def write(self, data: bytes) -> None: ...


class PeerChannel:
    """Bidirectional framed channel over a reader/writer pair."""

    def __init__(self, reader: asyncio.StreamReader, writer: FrameWriter) -> None:
        self.reader = reader
        self.writer = writer
        self.decoder = FrameDecoder()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @classmethod
    async def open_stdio(cls) -> "PeerChannel":
        """Attach to this process's stdin/stdout."""
        loop = asyncio.get_running_loop()

        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)

        transport, _ = await loop.connect_write_pipe(asyncio.Protocol, sys.stdout.buffer)
        return cls(reader, transport)

    def send(self, message: dict[str, Any]) -> None:
        """Frame and write a message to the peer.

        Raises:
            ChannelClosedError: If the channel is closed
        """
        if self._closed:
            raise ChannelClosedError("Peer channel is closed")
        self.writer.write(encode(message))
        logger.debug(f"Sent to peer: {message.get('command') or 'response'} id={message.get('id')}")

    async def messages(self) -> AsyncIterator[dict[str, Any]]:
        """Yield well-formed message objects until EOF.

        Malformed frames and non-object payloads are logged and skipped.
        """
        while not self._closed:
            chunk = await self.reader.read(READ_CHUNK_SIZE)
            if not chunk:
                if self.decoder.pending_bytes:
                    logger.warning(
                        f"Channel closed with {self.decoder.pending_bytes} bytes of partial frame"
                    )
                logger.info("Peer channel reached EOF")
                self._closed = True
                return

            for message in self.decoder.feed(chunk):
                if message is None:
                    continue
                if not isinstance(message, dict):
                    logger.warning(f"Dropping non-object frame: {type(message).__name__}")
                    continue
                yield message

    def close(self) -> None:
        """Stop reading and close the write side."""
        self._closed = True
        close = getattr(self.writer, "close", None)
        if callable(close):
            close()
