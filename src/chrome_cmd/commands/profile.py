"""Profile commands - list, select, show and remove registered profiles."""

import json
import sys

import click

from ..formatters import print_profile_detail, print_profiles_table
from ..store.profiles import ConfigStore, Profile
from ..store.registry import RegistryStore


def _find_or_exit(store: ConfigStore, query: str) -> Profile:
    profile = store.find_profile(query)
    if profile is None:
        click.echo(f"Error: Profile '{query}' not found", err=True)
        click.echo("\nRun 'chrome-cmd profile list' to see registered profiles.")
        sys.exit(1)
    return profile


@click.group("profile")
def profile_group() -> None:
    """Manage browser profiles."""
    pass


@profile_group.command("list")
@click.pass_context
def profile_list(ctx: click.Context) -> None:
    """List registered profiles."""
    config = ConfigStore().load()
    bridges = RegistryStore().read()

    if ctx.obj.get("json_output"):
        data = [
            {
                **p.to_dict(),
                "active": p.id == config.active_profile_id,
                "connected": p.id in bridges,
            }
            for p in config.profiles
        ]
        click.echo(json.dumps(data, indent=2))
    else:
        print_profiles_table(config.profiles, config.active_profile_id, bridges)


@profile_group.command("select")
@click.argument("profile")
def profile_select(profile: str) -> None:
    """Make PROFILE active (index, id, peer id or name)."""
    store = ConfigStore()
    found = _find_or_exit(store, profile)
    store.select_profile(found.id)
    click.echo(f"✓ Active profile: {found.profile_name}")


@profile_group.command("show")
@click.argument("profile", required=False)
@click.pass_context
def profile_show(ctx: click.Context, profile: str | None) -> None:
    """Show PROFILE (default: the active profile)."""
    store = ConfigStore()
    if profile:
        found = _find_or_exit(store, profile)
    else:
        found = store.get_active_profile()
        if found is None:
            click.echo("Error: No active profile", err=True)
            sys.exit(1)

    active = store.load().active_profile_id == found.id
    info = RegistryStore().get(found.id)

    if ctx.obj.get("json_output"):
        data = {
            **found.to_dict(),
            "active": active,
            "bridge": info.to_dict() if info else None,
        }
        click.echo(json.dumps(data, indent=2))
    else:
        print_profile_detail(found, active, info)


@profile_group.command("remove")
@click.argument("profile")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
def profile_remove(profile: str, yes: bool) -> None:
    """Remove PROFILE and its bridge registry entry."""
    store = ConfigStore()
    found = _find_or_exit(store, profile)

    if not yes:
        click.confirm(f"Remove profile '{found.profile_name}'?", abort=True)

    store.remove_profile(found.id)
    RegistryStore().unregister(found.id)
    click.echo(f"✓ Removed profile: {found.profile_name}")

    active = store.get_active_profile()
    if active:
        click.echo(f"  Active profile: {active.profile_name}")
