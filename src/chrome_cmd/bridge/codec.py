"""Framed channel codec for native messaging.

Wire format (both directions)::

    [4 bytes: payload length (little-endian uint32)][N bytes: UTF-8 JSON]

The length prefix is the only frame delimiter. A payload that is not valid
JSON decodes to ``None`` but leaves framing intact, so the next frame is
read normally.
"""

import json
import struct
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

LENGTH_PREFIX = struct.Struct("<I")
LENGTH_PREFIX_SIZE = LENGTH_PREFIX.size


def encode(message: Any) -> bytes:
    """Encode a message as a length-prefixed frame.

    Args:
        message: JSON-serializable message

    Returns:
        Frame bytes ready to write to the channel
    """
    payload = json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return LENGTH_PREFIX.pack(len(payload)) + payload


def decode_payload(payload: bytes) -> Any | None:
    """Parse a frame payload, returning None when it is not valid UTF-8 JSON."""
    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Malformed frame ({len(payload)} bytes): {e}")
        return None


class DecoderState(Enum):
    """Phase of the frame decoder."""

    AWAITING_LENGTH = "awaiting_length"
    AWAITING_PAYLOAD = "awaiting_payload"


class FrameDecoder:
    """Streaming two-phase frame decoder.

    Bytes may arrive in arbitrary chunks; ``feed`` accumulates them and
    returns every frame completed so far.

    Example:
        decoder = FrameDecoder()
        for message in decoder.feed(chunk):
            if message is not None:
                dispatch(message)
    """

    def __init__(self) -> None:
        self.state = DecoderState.AWAITING_LENGTH
        self.target_length = LENGTH_PREFIX_SIZE
        self._buffer = bytearray()

    @property
    def pending_bytes(self) -> int:
        """Bytes accumulated towards the frame currently being read."""
        return len(self._buffer)

    def feed(self, data: bytes) -> list[Any | None]:
        """Consume a chunk of bytes.

        Args:
            data: Raw bytes read from the channel

        Returns:
            Decoded messages in arrival order (None for malformed payloads)
        """
        messages: list[Any | None] = []
        view = memoryview(data)

        while view:
            needed = self.target_length - len(self._buffer)
            self._buffer += view[:needed]
            view = view[needed:]

            if len(self._buffer) < self.target_length:
                break

            if self.state is DecoderState.AWAITING_LENGTH:
                (length,) = LENGTH_PREFIX.unpack(self._buffer)
                self._buffer.clear()
                if length == 0:
                    messages.append(decode_payload(b""))
                    continue
                self.state = DecoderState.AWAITING_PAYLOAD
                self.target_length = length
            else:
                payload = bytes(self._buffer)
                self._reset()
                messages.append(decode_payload(payload))

        return messages

    def _reset(self) -> None:
        self.state = DecoderState.AWAITING_LENGTH
        self.target_length = LENGTH_PREFIX_SIZE
        self._buffer.clear()
