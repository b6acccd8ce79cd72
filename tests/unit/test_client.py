"""Unit tests for BridgeClient - the CLI side of the HTTP control endpoint."""

import asyncio
import os
import socket

import pytest
import pytest_asyncio

from chrome_cmd.client import RESPONSE_MARGIN, BridgeClient, BridgeClientError
from chrome_cmd.config import Settings
from chrome_cmd.store.profiles import ConfigStore
from chrome_cmd.store.registry import RegistryStore


def add_profile(port: int, pid: int | None = None) -> None:
    ConfigStore().create_profile("Work", peer_id="peer", profile_id="prof-1")
    RegistryStore().register(
        "prof-1", port=port, pid=pid or os.getpid(), peer_id="peer", profile_name="Work"
    )


def closed_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


async def auto_reply(server, channel, make_reply):
    """Answer every forwarded message with ``make_reply(message)``."""
    while True:
        message = await channel.queue.get()
        server.deliver(make_reply(message))


@pytest_asyncio.fixture
async def answering_peer(running_server, recording_channel):
    server, _ = running_server
    replies = {}

    def make_reply(message):
        build = replies.get(message["command"])
        if build is None:
            return {"id": message["id"], "success": True, "result": {"echo": message}}
        return {"id": message["id"], **build}

    task = asyncio.create_task(auto_reply(server, recording_channel, make_reply))
    yield server, replies
    task.cancel()


@pytest.mark.cli_unit
class TestResolveTarget:
    def test_no_active_profile(self):
        with pytest.raises(BridgeClientError, match="No active profile"):
            BridgeClient().resolve_target()

    def test_profile_not_connected(self):
        ConfigStore().create_profile("Work", peer_id="peer", profile_id="prof-1")

        with pytest.raises(BridgeClientError, match="not connected"):
            BridgeClient().resolve_target()

    def test_stale_pid(self, monkeypatch):
        add_profile(port=8765, pid=123456)
        monkeypatch.setattr("chrome_cmd.client.is_process_running", lambda pid: False)

        with pytest.raises(BridgeClientError, match="stale PID 123456"):
            BridgeClient().resolve_target()

    def test_target_url(self):
        add_profile(port=8770)

        target = BridgeClient(settings=Settings(host="127.0.0.1")).resolve_target()

        assert target.base_url == "http://127.0.0.1:8770"
        assert target.profile.id == "prof-1"


@pytest.mark.cli_unit
class TestRequestTimeout:
    def test_never_shorter_than_bridge_deadline(self):
        client = BridgeClient(settings=Settings(timeout=1.0))

        assert client.request_timeout("list_tabs") == 10.0 + RESPONSE_MARGIN
        assert client.request_timeout("capture_screenshot") >= 600.0

    def test_configured_timeout_wins_when_larger(self):
        assert BridgeClient(settings=Settings(timeout=120.0)).request_timeout("x") == 120.0


@pytest.mark.cli_unit
class TestSendCommand:
    @pytest.mark.asyncio
    async def test_success_returns_result(self, answering_peer):
        server, _ = answering_peer
        add_profile(port=server.port)

        async with BridgeClient() as client:
            result = await client.send_command("list_tabs", {"window": 1}, request_id="abc")

        assert result == {"echo": {"command": "list_tabs", "data": {"window": 1}, "id": "abc"}}

    @pytest.mark.asyncio
    async def test_failure_reply_raises_peer_error(self, answering_peer):
        server, replies = answering_peer
        replies["navigate"] = {"success": False, "error": "Tab not found"}
        add_profile(port=server.port)

        async with BridgeClient() as client:
            with pytest.raises(BridgeClientError, match="Tab not found"):
                await client.send_command("navigate")

    @pytest.mark.asyncio
    async def test_bridge_timeout(self, running_server):
        """A 504 from the bridge surfaces as 'Timeout'."""
        server, _ = running_server
        add_profile(port=server.port)

        async with BridgeClient() as client:
            with pytest.raises(BridgeClientError) as exc_info:
                await client.send_command("slow")

        assert exc_info.value.message == "Timeout"
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_unreachable_bridge(self):
        add_profile(port=closed_port())

        async with BridgeClient(ping_attempts=2, ping_delay=0.0) as client:
            with pytest.raises(BridgeClientError, match="not responding"):
                await client.send_command("ping")

    @pytest.mark.asyncio
    async def test_requires_context(self):
        with pytest.raises(BridgeClientError, match="not initialized"):
            await BridgeClient().send_command("ping")

    @pytest.mark.asyncio
    async def test_ping(self, answering_peer):
        server, replies = answering_peer
        replies["ping"] = {"success": True, "result": {"status": "ok"}}
        add_profile(port=server.port)

        async with BridgeClient() as client:
            info = await client.ping()

        assert info["profile"] == "Work"
        assert info["port"] == server.port
        assert info["result"] == {"status": "ok"}
