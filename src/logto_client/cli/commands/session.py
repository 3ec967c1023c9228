"""Session commands for logto CLI.

Commands:
    status       - Show authentication state, storage backend, cached tokens
    session set  - Store refresh / ID tokens from an external sign-in
    logout       - Clear stored credentials and cached tokens
"""

from __future__ import annotations

__all__ = ["logout", "session", "status"]

from datetime import datetime, timezone

import click

from logto_client.auth.storage import get_storage_info
from logto_client.exceptions import ClaimsDecodeError

from ..helpers import CliState, handle_logto_errors, load_client_or_exit
from ..styling import style_dim, style_error, style_header, style_label, style_success


@click.command()
@click.pass_obj
@handle_logto_errors
def status(state: CliState) -> None:
    """Show authentication status."""
    client = load_client_or_exit(state)

    click.echo(style_header("Session"))
    if not client.is_authenticated:
        click.echo(style_error("Not authenticated"))
    else:
        click.echo(style_success("Authenticated"))
        try:
            id_claims = client.get_id_token_claims()
            click.echo(f"  {style_label('Subject')} {id_claims.sub}")
            if id_claims.email:
                click.echo(f"  {style_label('Email')} {id_claims.email}")
        except ClaimsDecodeError:
            click.echo(style_dim("  Stored ID token could not be decoded."))
        refresh = "present" if client.get_refresh_token() else "missing"
        click.echo(f"  {style_label('Refresh token')} {refresh}")

    click.echo()
    click.echo(style_header("Storage"))
    for name, value in get_storage_info(client.token_manager.storage).items():
        click.echo(f"  {style_label(name)} {value}")

    click.echo()
    click.echo(style_header("Cached access tokens"))
    cached = client.token_manager.cache.snapshot()
    if not cached:
        click.echo(style_dim("  No cached tokens."))
    for access_token in cached.values():
        expires = datetime.fromtimestamp(access_token.expires_at, tz=timezone.utc)
        state_text = "expired" if access_token.is_expired() else "valid"
        scope = access_token.scope or "-"
        click.echo(f"  {scope}  {state_text} until {expires.isoformat()}")


@click.group()
def session() -> None:
    """Session management."""
    pass


@session.command("set")
@click.option("--refresh-token", default=None, help="Refresh token from sign-in")
@click.option("--id-token", default=None, help="ID token from sign-in")
@click.pass_obj
@handle_logto_errors
def session_set(state: CliState, refresh_token: str | None, id_token: str | None) -> None:
    """Store tokens obtained from an external sign-in flow."""
    if refresh_token is None and id_token is None:
        raise click.UsageError("Provide --refresh-token and/or --id-token.")

    client = load_client_or_exit(state)
    if refresh_token is not None:
        client.set_refresh_token(refresh_token)
    if id_token is not None:
        client.set_id_token(id_token)

    click.echo(style_success("Session updated"))


@click.command()
@click.pass_obj
@handle_logto_errors
def logout(state: CliState) -> None:
    """Clear stored credentials and cached access tokens."""
    client = load_client_or_exit(state)
    client.sign_out()
    click.echo(style_success("Logged out"))
