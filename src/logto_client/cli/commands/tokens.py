"""Token commands for logto CLI.

Commands:
    token          - Print a user access token
    machine-token  - Print an application (client credentials) access token
    claims         - Print ID token or organization token claims as JSON
    userinfo       - Print the userinfo endpoint response as JSON
"""

from __future__ import annotations

__all__ = ["claims", "machine_token", "token", "userinfo"]

import json

import click

from ..helpers import CliState, handle_logto_errors, load_client_or_exit


@click.command()
@click.option("--resource", default="", help="Declared API resource")
@click.option("--organization", "organization_id", default="", help="Organization ID")
@click.option("--json", "as_json", is_flag=True, help="Print token with scope and expiry as JSON")
@click.pass_obj
@handle_logto_errors
def token(state: CliState, resource: str, organization_id: str, as_json: bool) -> None:
    """Print a usable access token for the signed-in user."""
    if resource and organization_id:
        raise click.UsageError("--resource and --organization are mutually exclusive.")

    client = load_client_or_exit(state)
    if organization_id:
        access_token = client.get_organization_token(organization_id)
    else:
        access_token = client.get_access_token(resource)

    if as_json:
        click.echo(access_token.model_dump_json(by_alias=True))
    else:
        click.echo(access_token.token)


@click.command("machine-token")
@click.option("--resource", required=True, help="API resource indicator")
@click.option("--json", "as_json", is_flag=True, help="Print token with scope and expiry as JSON")
@click.pass_obj
@handle_logto_errors
def machine_token(state: CliState, resource: str, as_json: bool) -> None:
    """Print an access token for the application itself."""
    client = load_client_or_exit(state)
    access_token = client.get_machine_access_token(resource)

    if as_json:
        click.echo(access_token.model_dump_json(by_alias=True))
    else:
        click.echo(access_token.token)


@click.command()
@click.option(
    "--organization",
    "organization_id",
    default="",
    help="Show organization token claims instead of ID token claims",
)
@click.pass_obj
@handle_logto_errors
def claims(state: CliState, organization_id: str) -> None:
    """Print decoded token claims (signature not verified)."""
    client = load_client_or_exit(state)
    if organization_id:
        decoded = client.get_organization_token_claims(organization_id)
    else:
        decoded = client.get_id_token_claims()
    click.echo(json.dumps(decoded.model_dump(exclude_none=True), indent=2))


@click.command()
@click.pass_obj
@handle_logto_errors
def userinfo(state: CliState) -> None:
    """Print the userinfo endpoint response."""
    client = load_client_or_exit(state)
    info = client.fetch_user_info()
    click.echo(json.dumps(info.model_dump(exclude_none=True), indent=2))
