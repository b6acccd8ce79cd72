"""Integration tests: CLI client -> bridge -> peer and back.

The first group runs the bridge in-process with a PeerConnection on the
other end of in-memory pipes; the second launches a real bridge host
subprocess the way the browser does.
"""

import asyncio
import os
import signal
import socket
import sys

import pytest
import pytest_asyncio

from chrome_cmd.bridge.lifecycle import BridgeProcess
from chrome_cmd.client import BridgeClient, BridgeClientError
from chrome_cmd.config import Settings
from chrome_cmd.peer.connection import PeerConnection, SubprocessConnector
from chrome_cmd.store.profiles import ConfigStore
from chrome_cmd.store.registry import RegistryStore

pytestmark = [pytest.mark.integration, pytest.mark.bridge]


async def browser_commands(message: dict):
    """A tiny stand-in for the extension's command handlers."""
    command = message.get("command")
    if command == "ping":
        return {"status": "ok"}
    if command == "list_tabs":
        return [{"id": 1, "url": "https://example.com"}]
    if command == "hang":
        await asyncio.sleep(60)
    raise ValueError(f"Unknown command: {command}")


@pytest_asyncio.fixture
async def connected_bridge(pipe_pair, monkeypatch):
    """Bridge and peer wired together and registered."""
    monkeypatch.setattr("chrome_cmd.bridge.lifecycle.find_available_port", lambda *a: 0)
    channel, peer_in, peer_out = pipe_pair()
    bridge = BridgeProcess(channel=channel, settings=Settings())
    await bridge.startup()
    bridge.server.default_timeout = 0.5
    bridge_task = asyncio.create_task(bridge.run())

    async def connect():
        return peer_in, peer_out

    peer = PeerConnection(
        connect=connect,
        peer_id="ext-e2e",
        installation_id="inst-e2e",
        profile_name="E2E",
        handler=browser_commands,
        register_delay=0.01,
        max_attempts=0,
    )
    peer_task = asyncio.create_task(peer.run())
    await asyncio.wait_for(peer.registered.wait(), 2.0)

    yield bridge, peer

    peer.stop()
    await asyncio.wait_for(peer_task, 2.0)
    await asyncio.wait_for(bridge_task, 2.0)
    await bridge.shutdown()


class TestInProcess:
    @pytest.mark.asyncio
    async def test_registration_recorded(self, connected_bridge):
        bridge, _ = connected_bridge

        assert ConfigStore().get_active_profile().id == "inst-e2e"
        assert RegistryStore().get("inst-e2e").port == bridge.port

    @pytest.mark.asyncio
    async def test_ping_round_trip(self, connected_bridge):
        async with BridgeClient() as client:
            info = await client.ping()

        assert info["profile"] == "E2E"
        assert info["result"] == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_concurrent_commands(self, connected_bridge):
        async with BridgeClient() as client:
            results = await asyncio.gather(
                client.send_command("list_tabs"),
                client.send_command("ping"),
                client.send_command("list_tabs"),
            )

        assert results == [
            [{"id": 1, "url": "https://example.com"}],
            {"status": "ok"},
            [{"id": 1, "url": "https://example.com"}],
        ]

    @pytest.mark.asyncio
    async def test_peer_error_is_reported(self, connected_bridge):
        async with BridgeClient() as client:
            with pytest.raises(BridgeClientError, match="Unknown command: nope"):
                await client.send_command("nope")

    @pytest.mark.asyncio
    async def test_unanswered_command_times_out(self, connected_bridge):
        bridge, _ = connected_bridge

        async with BridgeClient() as client:
            with pytest.raises(BridgeClientError) as exc_info:
                await client.send_command("hang")

        assert exc_info.value.message == "Timeout"
        assert len(bridge.pending) == 0

    @pytest.mark.asyncio
    async def test_peer_disconnect_shuts_bridge_down(self, connected_bridge):
        bridge, peer = connected_bridge

        peer.stop()
        await asyncio.sleep(0.1)
        await bridge.shutdown()

        assert RegistryStore().get("inst-e2e") is None


@pytest.mark.asyncio
async def test_host_subprocess(chrome_home):
    """A real `chrome-cmd host` process registers and answers through the CLI client."""
    env = {**os.environ, "CHROME_CMD_HOME": str(chrome_home.root)}
    connector = SubprocessConnector([sys.executable, "-m", "chrome_cmd", "host"], env=env)
    peer = PeerConnection(
        connect=connector,
        peer_id="ext-subprocess",
        installation_id="inst-subprocess",
        profile_name="Subprocess",
        max_attempts=0,
    )
    peer_task = asyncio.create_task(peer.run())

    try:
        await asyncio.wait_for(peer.registered.wait(), 15.0)

        async with BridgeClient() as client:
            info = await client.ping()

        assert info["profile"] == "Subprocess"
        assert info["pid"] == connector.process.pid
    finally:
        peer.stop()
        await asyncio.wait_for(peer_task, 5.0)
        await connector.close()

    # The host removes its own registry entry when stdin closes
    assert RegistryStore().get("inst-subprocess") is None
    assert (chrome_home.log_dir / "bridge.log").exists()


@pytest.mark.asyncio
async def test_host_sigterm_removes_registry_entry(chrome_home):
    """SIGTERM makes the host unregister its profile and exit cleanly."""
    env = {**os.environ, "CHROME_CMD_HOME": str(chrome_home.root)}
    connector = SubprocessConnector([sys.executable, "-m", "chrome_cmd", "host"], env=env)
    peer = PeerConnection(
        connect=connector,
        peer_id="ext-sigterm",
        installation_id="inst-sigterm",
        max_attempts=0,
    )
    peer_task = asyncio.create_task(peer.run())

    try:
        await asyncio.wait_for(peer.registered.wait(), 15.0)
        process = connector.process
        assert RegistryStore().get("inst-sigterm").pid == process.pid

        process.send_signal(signal.SIGTERM)
        returncode = await asyncio.wait_for(process.wait(), 10.0)
        await asyncio.wait_for(peer_task, 5.0)
    finally:
        peer.stop()
        await connector.close()

    assert returncode == 0
    assert RegistryStore().read() == {}


@pytest.mark.asyncio
async def test_host_exits_1_when_port_range_is_taken(chrome_home):
    """An exhausted port range is fatal: the host exits with status 1."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupied:
        occupied.bind(("127.0.0.1", 0))
        occupied.listen(1)
        port = str(occupied.getsockname()[1])
        env = {
            **os.environ,
            "CHROME_CMD_HOME": str(chrome_home.root),
            "CHROME_CMD_PORT_START": port,
            "CHROME_CMD_PORT_END": port,
        }

        process = await asyncio.create_subprocess_exec(
            sys.executable,
            "-m",
            "chrome_cmd",
            "host",
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            env=env,
        )
        returncode = await asyncio.wait_for(process.wait(), 15.0)

    assert returncode == 1
    assert RegistryStore().read() == {}
    assert "No available ports" in (chrome_home.log_dir / "bridge.log").read_text()
