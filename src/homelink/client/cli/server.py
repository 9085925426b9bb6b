"""Local server configuration commands for HomeLink CLI.

Commands:
- server set: Store the local server address
- server show: Show the configured addresses
- server clear: Forget the local server address
- login: Log in to the local server
- logout: Forget the local session
"""

from __future__ import annotations

import click

from homelink.client.cli.config import fail, get_store, run_with_context
from homelink.client.context import HomeLinkContext
from homelink.core.config import ServerAddress, TransportConfig


@click.group()
def server() -> None:
    """Local server configuration."""


@server.command("set")
@click.argument("address")
def set_server(address: str) -> None:
    """Set the local server address (HOST or HOST:PORT)."""
    try:
        parsed = ServerAddress.parse(address)
    except ValueError as e:
        fail(str(e))
    get_store().set_server_address(parsed)
    click.echo(f"Server set to {parsed.base_url}")


@server.command("show")
def show_server() -> None:
    """Show the configured local server and cloud relay."""
    config = TransportConfig.from_preferences(get_store())
    if config.server is None:
        click.echo("Local server: not configured")
    else:
        click.echo(f"Local server: {config.server.base_url}")
        click.echo(f"Event channel: {config.local_ws_url}")
    click.echo(f"Cloud relay: {config.cloud_url}")


@server.command("clear")
def clear_server() -> None:
    """Forget the local server address."""
    get_store().clear_server_address()
    click.echo("Server configuration cleared.")


@click.command()
@click.option("--username", prompt=True, help="Local account username.")
@click.option("--password", prompt=True, hide_input=True, help="Local account password.")
def login(username: str, password: str) -> None:
    """Log in to the local server."""

    async def _login(ctx: HomeLinkContext) -> dict[str, object]:
        return await ctx.local.login(username, password)

    data = run_with_context(_login)
    user = data.get("user") or {}
    name = user.get("username", username) if isinstance(user, dict) else username
    click.echo(f"Logged in as {name}.")


@click.command()
def logout() -> None:
    """Forget the local server session."""

    async def _logout(ctx: HomeLinkContext) -> None:
        ctx.local.logout()

    run_with_context(_logout)
    click.echo("Logged out.")

