"""Host command - the native-messaging bridge process.

This is what the browser launches through the native-messaging manifest.
stdin/stdout carry length-prefixed JSON frames, so nothing may ever be
printed to stdout; all diagnostics go to the log file.
"""

import asyncio
import sys

import click
import structlog

from ..bridge.lifecycle import run_bridge_host
from ..config import load_settings
from ..shared.logging import configure_host_logging
from ..shared.paths import ensure_dirs, get_log_file

logger = structlog.get_logger(__name__)


@click.command("host")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level (default: from settings)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Log file path (default: ~/.config/chrome-cmd/logs/bridge.log)",
)
@click.argument("origin", required=False)
def host_command(log_level: str | None, log_file: str | None, origin: str | None) -> None:
    """Run the bridge between the browser extension and the CLI.

    Started by the browser, not by hand. The browser passes the calling
    extension's origin as the first argument.
    """
    settings = load_settings()
    ensure_dirs()
    configure_host_logging(
        level=log_level or settings.log_level,
        log_file=log_file or get_log_file("bridge"),
    )

    logger.info(f"Bridge host starting (origin={origin})")

    try:
        exit_code = asyncio.run(run_bridge_host(settings))
    except KeyboardInterrupt:
        logger.info("Bridge interrupted")
        exit_code = 0

    sys.exit(exit_code)
