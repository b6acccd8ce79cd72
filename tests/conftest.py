"""Shared test fixtures for chrome-cmd tests.

This module provides fixtures for testing the bridge functionality:
- chrome_home: Isolated ~/.config/chrome-cmd for every test
- RecordingChannel: Stands in for the peer channel and records forwarded messages
- make_pipe_pair: In-memory byte pipes joining a bridge and a peer
- running_server: A real BridgeServer on an ephemeral port
"""

import asyncio
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio

from chrome_cmd.bridge.channel import PeerChannel
from chrome_cmd.bridge.errors import ChannelClosedError
from chrome_cmd.bridge.server import BridgeServer
from chrome_cmd.config import ENV_VARS

# =============================================================================
# Isolated config directory
# =============================================================================


@dataclass
class ChromeHome:
    """Paths of the isolated config directory."""

    root: Path
    config_file: Path
    bridges_file: Path
    settings_file: Path
    log_dir: Path


@pytest.fixture(autouse=True)
def chrome_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ChromeHome:
    """Point every store at a temporary directory and clear env overrides."""
    root = tmp_path / "chrome-cmd"
    home = ChromeHome(
        root=root,
        config_file=root / "config.json",
        bridges_file=root / "bridges.json",
        settings_file=root / "settings.yaml",
        log_dir=root / "logs",
    )
    monkeypatch.setattr("chrome_cmd.shared.paths.CONFIG_DIR", home.root)
    monkeypatch.setattr("chrome_cmd.shared.paths.CONFIG_FILE", home.config_file)
    monkeypatch.setattr("chrome_cmd.shared.paths.BRIDGES_FILE", home.bridges_file)
    monkeypatch.setattr("chrome_cmd.shared.paths.SETTINGS_FILE", home.settings_file)
    monkeypatch.setattr("chrome_cmd.shared.paths.LOG_DIR", home.log_dir)
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    return home


# =============================================================================
# Peer stand-ins
# =============================================================================


class RecordingChannel:
    """Records what the server forwards to the peer."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.closed = False

    def send(self, message: dict[str, Any]) -> None:
        if self.closed:
            raise ChannelClosedError("closed")
        self.messages.append(message)
        self.queue.put_nowait(message)

    async def next_message(self, timeout: float = 2.0) -> dict[str, Any]:
        """Wait for the next forwarded message."""
        return await asyncio.wait_for(self.queue.get(), timeout)


class MemoryWriter:
    """Writer end of an in-memory pipe feeding a StreamReader."""

    def __init__(self, reader: asyncio.StreamReader) -> None:
        self.reader = reader
        self.closed = False
        self.written = bytearray()

    def write(self, data: bytes) -> None:
        if self.closed:
            return
        self.written.extend(data)
        self.reader.feed_data(data)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.reader.feed_eof()


def make_pipe_pair() -> tuple[PeerChannel, asyncio.StreamReader, MemoryWriter]:
    """Build a bridge-side channel plus the peer's reader and writer.

    Must be called with a running event loop.
    """
    bridge_in = asyncio.StreamReader()
    peer_in = asyncio.StreamReader()
    bridge_channel = PeerChannel(bridge_in, MemoryWriter(peer_in))
    return bridge_channel, peer_in, MemoryWriter(bridge_in)


@pytest.fixture
def recording_channel() -> RecordingChannel:
    return RecordingChannel()


@pytest_asyncio.fixture
async def running_server(
    recording_channel: RecordingChannel,
) -> AsyncGenerator[tuple[BridgeServer, httpx.AsyncClient], None]:
    """A BridgeServer on an ephemeral port with an httpx client pointed at it."""
    server = BridgeServer(channel=recording_channel, default_timeout=0.5)
    await server.start(0)
    async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{server.port}") as client:
        yield server, client
    await server.stop()


# =============================================================================
# Sample data
# =============================================================================


@pytest.fixture
def register_data() -> dict[str, Any]:
    """REGISTER payload as the extension sends it."""
    return {
        "peerId": "abcdefghijklmnopabcdefghijklmnop",
        "installationId": "inst-1",
        "profileName": "Work",
    }


@pytest.fixture
def pipe_pair():
    """Factory for in-memory bridge/peer pipes (call inside a running loop)."""
    return make_pipe_pair
