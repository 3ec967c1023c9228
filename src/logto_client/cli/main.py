"""Main CLI entry point for logto-client.

Commands:
    status        - Show session state and storage backend
    session set   - Store tokens obtained from an external sign-in
    logout        - Clear stored credentials and cached tokens
    token         - Print a user access token (resource / organization)
    machine-token - Print an application access token
    claims        - Print ID token or organization token claims (JSON)
    userinfo      - Print userinfo endpoint response (JSON)

Subcommand help:
    logto COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import logging
import sys
from pathlib import Path

import click

from logto_client import __version__
from logto_client.telemetry.system_logger import configure_system_logger_file, set_console_level

from .commands.session import logout, session, status
from .commands.tokens import claims, machine_token, token, userinfo
from .helpers import CliState


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: app config directory)",
)
@click.option("--verbose", is_flag=True, help="Log token lifecycle events to stderr")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Append warnings and errors to this JSONL file",
)
@click.pass_context
def cli(
    ctx: click.Context,
    version: bool,
    config_path: Path | None,
    verbose: bool,
    log_file: Path | None,
) -> None:
    """logto: token lifecycle client for Logto."""
    if version:
        click.echo(f"logto-client {__version__}")
        sys.exit(0)

    if verbose:
        set_console_level(logging.DEBUG)
    if log_file is not None:
        try:
            configure_system_logger_file(log_file)
        except OSError as e:
            raise click.ClickException(f"Cannot open log file {log_file}: {e.strerror or e}") from e

    state = ctx.ensure_object(CliState)
    if config_path is not None:
        state.config_path = config_path

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(status)
cli.add_command(session)
cli.add_command(logout)
cli.add_command(token)
cli.add_command(machine_token)
cli.add_command(claims)
cli.add_command(userinfo)


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
