"""Bridge commands - inspect, stop and clean up running bridge processes."""

import json
import os
import signal
import sys
import time
from typing import Any

import click
import httpx

from ..config import load_settings
from ..formatters import print_bridges_table
from ..store.profiles import ConfigStore
from ..store.registry import RegistryStore, is_process_running

STOP_TIMEOUT = 5.0
STOP_POLL_INTERVAL = 0.1


def probe_bridge(host: str, port: int, timeout: float = 0.5) -> bool:
    """Single ``GET /ping`` against a bridge."""
    try:
        response = httpx.get(f"http://{host}:{port}/ping", timeout=timeout)
    except httpx.HTTPError:
        return False
    return response.status_code == 200


def stop_process(pid: int, timeout: float = STOP_TIMEOUT) -> bool:
    """Stop ``pid`` via SIGTERM, force-killing after ``timeout``.

    Returns:
        True if the process exited gracefully, False if it was force-killed
    """
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        # Already gone
        return True

    for _ in range(int(timeout / STOP_POLL_INTERVAL)):
        time.sleep(STOP_POLL_INTERVAL)
        if not is_process_running(pid):
            return True

    try:
        os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        return True
    return False


@click.group("bridge")
def bridge_group() -> None:
    """Manage bridge processes."""
    pass


@bridge_group.command("status")
@click.option("--probe/--no-probe", default=True, help="Ping each bridge over HTTP")
@click.pass_context
def bridge_status(ctx: click.Context, probe: bool) -> None:
    """Show registered bridges and whether they are alive."""
    settings = load_settings()
    rows: list[dict[str, Any]] = []

    for profile_id, info in RegistryStore().read().items():
        alive = is_process_running(info.pid)
        if alive and probe:
            alive = probe_bridge(settings.host, info.port)
        rows.append(
            {
                "profile_id": profile_id,
                "profile_name": info.profile_name,
                "port": info.port,
                "pid": info.pid,
                "last_seen": info.last_seen,
                "alive": alive,
            }
        )

    if ctx.obj.get("json_output"):
        click.echo(json.dumps(rows, indent=2))
    else:
        print_bridges_table(rows)


@bridge_group.command("stop")
@click.argument("profile", required=False)
def bridge_stop(profile: str | None) -> None:
    """Stop the bridge serving PROFILE (default: the active profile)."""
    store = ConfigStore()
    found = store.find_profile(profile) if profile else store.get_active_profile()
    if found is None:
        click.echo(f"Error: Profile '{profile or 'active'}' not found", err=True)
        sys.exit(1)

    registry = RegistryStore()
    info = registry.get(found.id)
    if info is None or not is_process_running(info.pid):
        registry.unregister(found.id)
        click.echo(f"Bridge for '{found.profile_name}' is not running.")
        return

    graceful = stop_process(info.pid)
    # A killed bridge cannot clean up after itself
    registry.unregister(found.id, pid=info.pid)

    if graceful:
        click.echo(f"✓ Bridge stopped (was PID {info.pid}).")
    else:
        click.echo(f"Bridge force-killed (PID {info.pid}).")


@bridge_group.command("cleanup")
def bridge_cleanup() -> None:
    """Remove registry entries whose process is gone."""
    registry = RegistryStore()
    entries = registry.read()
    removed = registry.cleanup_stale()

    if not removed:
        click.echo("✓ No stale bridges.")
        return

    for profile_id in removed:
        name = entries[profile_id].profile_name if profile_id in entries else profile_id
        click.echo(f"  Removed: {name}")
    click.echo(f"✓ Removed {len(removed)} stale bridge(s).")
