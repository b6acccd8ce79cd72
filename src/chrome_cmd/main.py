"""CLI main entry point."""

import click

from . import __version__
from .commands.bridge import bridge_group
from .commands.config import config_group
from .commands.host import host_command
from .commands.peer import peer_command
from .commands.profile import profile_group
from .commands.send import ping_command, send_command
from .commands.tab import tab_group
from .shared.logging import configure_cli_logging


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def cli(ctx: click.Context, verbose: int, json_output: bool) -> None:
    """Control Chrome from the command line through the chrome-cmd extension."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json_output"] = json_output

    # The host command configures its own file logging
    if ctx.invoked_subcommand != "host":
        configure_cli_logging(verbose)


@cli.command()
def version() -> None:
    """Show version."""
    click.echo(f"chrome-cmd {__version__}")


cli.add_command(host_command)
cli.add_command(send_command)
cli.add_command(ping_command)
cli.add_command(profile_group)
cli.add_command(bridge_group)
cli.add_command(tab_group)
cli.add_command(config_group)
cli.add_command(peer_command)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
