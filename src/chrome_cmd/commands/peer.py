"""Peer command - stand in for the browser extension.

Launches a bridge host subprocess and speaks the extension's side of the
protocol to it: REGISTER, keepalives, and replies to ``ping``. Useful for
checking the CLI end to end without a browser.
"""

import asyncio
import sys

import click
import structlog

from ..peer.connection import InstallationIdStore, PeerConnection, SubprocessConnector
from ..shared.logging import configure_cli_logging

logger = structlog.get_logger(__name__)


@click.command("peer")
@click.option("--peer-id", default="chrome-cmd-test-peer", help="Extension id to register as")
@click.option("--profile-name", default=None, help="Profile name to register")
@click.option(
    "--installation-id",
    default=None,
    help="Installation id (default: persisted in ~/.config/chrome-cmd)",
)
@click.option("--max-attempts", type=int, default=5, help="Reconnect attempts before giving up")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def peer_command(
    peer_id: str,
    profile_name: str | None,
    installation_id: str | None,
    max_attempts: int,
    verbose: bool,
) -> None:
    """Run a test peer connected to a freshly launched bridge."""
    # info by default, debug with -v
    configure_cli_logging(2 if verbose else 1)

    connector = SubprocessConnector([sys.executable, "-m", "chrome_cmd", "host"])
    connection = PeerConnection(
        connect=connector,
        peer_id=peer_id,
        installation_id=installation_id or InstallationIdStore().get_or_create(),
        profile_name=profile_name,
        max_attempts=max_attempts,
    )

    async def _run() -> None:
        try:
            await connection.run()
        finally:
            await connector.close()

    click.echo("Test peer running. Press Ctrl+C to stop.", err=True)
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        click.echo("Stopped.", err=True)
