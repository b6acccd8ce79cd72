"""Send and ping commands - call through the bridge to the extension."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from ..client import BridgeClient, BridgeClientError
from ..config import load_settings
from ..formatters import print_result
from ..store.profiles import ConfigStore

DATA_FILE_SUFFIXES = (".json", ".yaml", ".yml")


def run_client(func: Any) -> Any:
    """Run ``func(client)`` inside a connected BridgeClient, exiting 1 on errors."""

    async def _run() -> Any:
        async with BridgeClient(settings=load_settings()) as client:
            return await func(client)

    try:
        return asyncio.run(_run())
    except BridgeClientError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)


def read_data_file(ctx: click.Context, param: click.Parameter, value: str | None) -> dict[str, Any]:
    """Load ``--data-file`` as a mapping of command arguments."""
    if value is None:
        return {}
    path = Path(value)
    if path.suffix not in DATA_FILE_SUFFIXES:
        raise click.BadParameter(f"expected one of {', '.join(DATA_FILE_SUFFIXES)}, got '{path.name}'")

    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise click.BadParameter(f"cannot parse {path.name}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path.name} must contain a mapping")
    return data


def parse_data_flags(
    ctx: click.Context, param: click.Parameter, value: tuple[str, ...]
) -> dict[str, Any]:
    """Turn ``-d KEY=VALUE`` flags into a dict; values that parse as JSON are typed."""
    data: dict[str, Any] = {}
    for item in value:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"'{item}'. Expected KEY=VALUE")
        try:
            data[key] = json.loads(raw)
        except ValueError:
            data[key] = raw
    return data


@click.command("send")
@click.argument("command")
@click.option(
    "-d",
    "--data",
    "flag_data",
    multiple=True,
    callback=parse_data_flags,
    help="Data value (KEY=VALUE), overrides --data-file",
)
@click.option(
    "--data-file",
    "file_data",
    type=click.Path(exists=True, dir_okay=False),
    callback=read_data_file,
    help="JSON/YAML file with data",
)
@click.option("--id", "request_id", help="Correlation id (generated when omitted)")
@click.option("--no-tab", is_flag=True, help="Do not add the selected tab id")
@click.pass_context
def send_command(
    ctx: click.Context,
    command: str,
    flag_data: dict[str, Any],
    file_data: dict[str, Any],
    request_id: str | None,
    no_tab: bool,
) -> None:
    """Send COMMAND to the browser extension of the active profile.

    \b
    Examples:
      chrome-cmd send list_tabs
      chrome-cmd send navigate -d url=https://example.com
      chrome-cmd send capture_screenshot --data-file opts.json
    """
    data = {**file_data, **flag_data}

    if not no_tab and "tabId" not in data:
        tab_id = ConfigStore().get_active_tab_id()
        if tab_id is not None:
            data["tabId"] = tab_id

    result = run_client(lambda client: client.send_command(command, data, request_id))
    print_result(result, ctx.obj.get("json_output", False))


@click.command("ping")
@click.pass_context
def ping_command(ctx: click.Context) -> None:
    """Check that the bridge and extension of the active profile respond."""
    info = run_client(lambda client: client.ping())

    if ctx.obj.get("json_output"):
        print_result(info, json_output=True)
    else:
        click.echo(
            f"✓ {info['profile']} responded via port {info['port']} "
            f"in {info['latency_ms']} ms"
        )
