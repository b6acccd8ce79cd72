"""CLI output formatting helpers."""

import json
from typing import Any

import click
import yaml
from rich.console import Console
from rich.table import Table

from .store.profiles import Profile
from .store.registry import BridgeInfo

console = Console()


def print_result(result: Any, json_output: bool = False) -> None:
    """Print a command result as JSON or YAML."""
    if json_output:
        click.echo(json.dumps(result, indent=2, ensure_ascii=False))
    elif isinstance(result, (dict, list)):
        click.echo(yaml.safe_dump(result, default_flow_style=False, sort_keys=False).rstrip())
    elif result is None:
        click.echo("✓ OK")
    else:
        click.echo(result)


def print_profiles_table(
    profiles: list[Profile],
    active_id: str | None,
    bridges: dict[str, BridgeInfo],
) -> None:
    """Print profiles with the active marker and connection status.

    Args:
        profiles: Known profiles in config order
        active_id: Id of the active profile
        bridges: Registry entries keyed by profile id
    """
    if not profiles:
        console.print("[dim]No profiles registered yet.[/dim]")
        console.print("Open the browser with the extension installed to register one.")
        return

    table = Table(title="Profiles")
    table.add_column("#", justify="right")
    table.add_column("", width=1)
    table.add_column("Name")
    table.add_column("Id", style="dim")
    table.add_column("Bridge")

    for index, profile in enumerate(profiles, 1):
        marker = "[green]*[/green]" if profile.id == active_id else ""
        info = bridges.get(profile.id)
        bridge = f"port {info.port}" if info else "[dim]not connected[/dim]"
        table.add_row(str(index), marker, profile.profile_name, profile.id, bridge)

    console.print(table)


def print_profile_detail(profile: Profile, active: bool, info: BridgeInfo | None) -> None:
    """Print one profile."""
    console.print(f"[bold]{profile.profile_name}[/bold]" + (" [green](active)[/green]" if active else ""))
    console.print(f"  Id:           {profile.id}")
    console.print(f"  Peer id:      {profile.peer_id}")
    console.print(f"  Installed at: {profile.installed_at}")
    if profile.extension_path:
        console.print(f"  Extension:    {profile.extension_path}")
    if info:
        console.print(f"  Bridge:       port {info.port}, pid {info.pid}, last seen {info.last_seen}")
    else:
        console.print("  Bridge:       [dim]not connected[/dim]")


def print_bridges_table(rows: list[dict[str, Any]]) -> None:
    """Print registry entries with liveness.

    Args:
        rows: Dicts with profile_id, profile_name, port, pid, last_seen, alive
    """
    if not rows:
        console.print("[dim]No bridges registered.[/dim]")
        return

    table = Table(title="Bridges")
    table.add_column("Profile")
    table.add_column("Port", justify="right")
    table.add_column("PID", justify="right")
    table.add_column("Last seen", style="dim")
    table.add_column("Status")

    for row in rows:
        status = "[green]running[/green]" if row["alive"] else "[red]stale[/red]"
        table.add_row(
            row["profile_name"],
            str(row["port"]),
            str(row["pid"]),
            row["last_seen"],
            status,
        )

    console.print(table)


def print_settings(settings: dict[str, Any], sources: dict[str, str]) -> None:
    """Print settings with where each value came from."""
    for key, value in settings.items():
        source = sources.get(key, "default")
        click.echo(f"{key}: {value}  ({source})")
