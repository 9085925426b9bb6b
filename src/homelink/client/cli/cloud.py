"""Cloud relay commands for HomeLink CLI.

Commands:
- cloud login / logout: Manage the cloud session
- cloud enable / disable: Toggle the cloud preference
- cloud force: Toggle "force cloud only"
- cloud status: Show preferences, session and paired gateway
- cloud pair: Request (or verify) a gateway pairing code
- cloud gateways: List gateways registered with the account (or reachable remotely)
"""

from __future__ import annotations

from typing import Any

import click

from homelink.client.cli.config import echo_json, get_store, run_with_context
from homelink.client.context import HomeLinkContext


@click.group()
def cloud() -> None:
    """Cloud relay access."""


@cloud.command("login")
@click.option("--email", prompt=True, help="Cloud account email.")
@click.option("--password", prompt=True, hide_input=True, help="Cloud account password.")
def cloud_login(email: str, password: str) -> None:
    """Log in to the cloud relay."""

    async def _login(ctx: HomeLinkContext) -> dict[str, Any]:
        return await ctx.cloud.login(email, password)

    data = run_with_context(_login)
    homes = data.get("homes") or []
    click.echo(f"Logged in to the cloud, {len(homes)} accessible home(s).")


@cloud.command("logout")
def cloud_logout() -> None:
    """Forget the cloud session and paired gateway."""

    async def _logout(ctx: HomeLinkContext) -> None:
        ctx.cloud.logout()

    run_with_context(_logout)
    click.echo("Logged out of the cloud.")


@cloud.command("enable")
def cloud_enable() -> None:
    """Allow the cloud relay when the local server is unreachable."""
    get_store().set_cloud_enabled(True)
    click.echo("Cloud mode enabled.")


@cloud.command("disable")
def cloud_disable() -> None:
    """Use the local server only."""
    store = get_store()
    store.set_cloud_enabled(False)
    click.echo("Cloud mode disabled.")


@cloud.command("force")
@click.argument("enabled", type=click.BOOL)
def cloud_force(enabled: bool) -> None:
    """Try the cloud before the local server (true/false)."""
    store = get_store()
    store.set_force_cloud_only(enabled)
    if enabled and not store.get_preference().cloud_enabled:
        click.echo("Note: force cloud has no effect until 'homelink cloud enable'.")
    click.echo(f"Force cloud only {'enabled' if enabled else 'disabled'}.")


@cloud.command("status")
def cloud_status() -> None:
    """Show cloud preferences, session and paired gateway."""
    store = get_store()
    preference = store.get_preference()
    click.echo(f"Cloud enabled: {'yes' if preference.cloud_enabled else 'no'}")
    click.echo(f"Force cloud only: {'yes' if preference.force_cloud_only else 'no'}")
    click.echo(f"Logged in: {'yes' if store.get_cloud_session() else 'no'}")
    click.echo(f"Gateway: {store.get_gateway_id() or 'not paired'}")


@cloud.command("pair")
@click.option("--home-name", default=None, help="Name of the home to pair.")
@click.option("--expiry", default=10, show_default=True, help="Code lifetime in minutes.")
@click.option("--verify", "code", default=None, help="Verify an existing pairing code.")
def cloud_pair(home_name: str | None, expiry: int, code: str | None) -> None:
    """Request a pairing code to enter on the gateway."""

    async def _pair(ctx: HomeLinkContext) -> Any:
        if code:
            return await ctx.cloud.verify_pairing_code(code)
        return await ctx.cloud.request_pairing_code(home_name, expiry)

    data = run_with_context(_pair)
    if code:
        valid = isinstance(data, dict) and data.get("valid")
        click.echo(f"Code {code}: {'valid' if valid else 'invalid'}")
        return
    if isinstance(data, dict) and data.get("code"):
        click.echo(f"Pairing code: {data['code']}")
        if data.get("expires_at"):
            click.echo(f"Expires at: {data['expires_at']}")
    else:
        echo_json(data)


@cloud.command("gateways")
@click.option(
    "--remote", is_flag=True, help="List gateways reachable through the relay instead."
)
def cloud_gateways(remote: bool) -> None:
    """List gateways registered with the cloud account."""

    async def _gateways(ctx: HomeLinkContext) -> Any:
        if remote:
            return await ctx.cloud.get_remote_gateways()
        return await ctx.cloud.list_gateways()

    echo_json(run_with_context(_gateways))
