"""Config commands - view and edit settings.yaml."""

import json
import sys

import click

from ..config import (
    SETTING_KEYS,
    get_settings_path,
    load_settings,
    save_setting,
    unset_setting,
)
from ..formatters import print_settings


@click.group("config")
def config_group() -> None:
    """Manage settings."""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current settings and where each value comes from."""
    settings = load_settings()
    data = settings.to_dict()

    if ctx.obj.get("json_output"):
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(f"Settings file: {get_settings_path()}\n")
        print_settings(data, {key: settings.get_source(key) for key in data})


@config_group.command("set")
@click.argument("key", type=click.Choice(SETTING_KEYS))
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set KEY to VALUE in the settings file."""
    try:
        converted = save_setting(key, value)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ {key} = {converted}")


@config_group.command("unset")
@click.argument("key", type=click.Choice(SETTING_KEYS))
def config_unset(key: str) -> None:
    """Remove KEY from the settings file (back to default)."""
    if unset_setting(key):
        click.echo(f"✓ {key} reset to default")
    else:
        click.echo(f"{key} is not set in {get_settings_path()}")
