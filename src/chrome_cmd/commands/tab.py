"""Tab commands - remember which tab commands target by default."""

import sys

import click

from ..store.profiles import ConfigStore


@click.group("tab")
def tab_group() -> None:
    """Manage the selected tab."""
    pass


@tab_group.command("select")
@click.argument("tab_id", type=int)
def tab_select(tab_id: int) -> None:
    """Target TAB_ID in subsequent 'send' commands."""
    if tab_id < 0:
        click.echo("Error: Tab id must be a non-negative integer", err=True)
        sys.exit(1)
    ConfigStore().set_active_tab_id(tab_id)
    click.echo(f"✓ Selected tab {tab_id}")


@tab_group.command("clear")
def tab_clear() -> None:
    """Forget the selected tab."""
    ConfigStore().clear_active_tab_id()
    click.echo("✓ Tab selection cleared")


@tab_group.command("show")
def tab_show() -> None:
    """Show the selected tab."""
    tab_id = ConfigStore().get_active_tab_id()
    if tab_id is None:
        click.echo("No tab selected")
    else:
        click.echo(str(tab_id))
