"""CLI commands for inspecting providers and pruning stored OAuth sessions.

Usage:
    flask oauth providers
    flask oauth purge-sessions                 # uses OAUTH_SESSION_MAX_AGE
    flask oauth purge-sessions --max-age 3600
"""

from __future__ import annotations

import click
from flask import Flask
from flask.cli import AppGroup

from oauthbridge.core.auth.bridge import current_bridge
from oauthbridge.core.auth.errors import StoreNotConfigured
from oauthbridge.core.session.store import FilesystemSessionStore

oauth_cli = AppGroup("oauth", help="OAuth session bridge maintenance.")


@oauth_cli.command("providers")
def list_providers_command():
    """List registered identity providers."""
    providers = current_bridge().providers.list()
    if not providers:
        click.echo("No providers registered.")
        return
    for provider in providers:
        click.echo(f"{provider.name}\t{type(provider).__name__}")


@oauth_cli.command("purge-sessions")
@click.option("--max-age", type=int, default=None, help="Age in seconds; defaults to the store's max age")
def purge_sessions_command(max_age: int | None):
    """Delete expired server-side session files."""
    try:
        store = current_bridge().store
    except StoreNotConfigured as e:
        raise click.ClickException(str(e)) from e
    if not isinstance(store, FilesystemSessionStore):
        click.echo("Session records live in cookies; nothing to purge.")
        return
    removed = store.purge_expired(max_age=max_age)
    click.echo(f"  ✓ Removed {removed} expired session file(s) from {store.path}")


def register_commands(app: Flask) -> None:
    app.cli.add_command(oauth_cli)
