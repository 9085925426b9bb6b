"""Home control commands for HomeLink CLI.

Every command resolves the transport first (local server, cloud relay
or offline) and then goes through the unified dispatcher.

Commands:
- mode: Show which transport would be used
- use: Select the active home
- homes / devices / scenes / automations: Listings
- control: Send a control command to an entity
- scene run: Run a scene
- listen: Stream live events
"""

from __future__ import annotations

import json
from typing import Any

import click

from homelink.client.channel import EntityStateEvent
from homelink.client.cli.config import (
    echo_json,
    get_store,
    resolve_mode,
    run_with_context,
)
from homelink.client.context import HomeLinkContext
from homelink.core.errors import UnreachableError
from homelink.core.types import TransportMode

home_option = click.option(
    "--home",
    "home_id",
    type=int,
    default=None,
    help="Home to resolve the transport for (default: active home).",
)


def parse_value(raw: str | None) -> Any:
    """Interpret a command-line value as JSON, falling back to the raw string."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _echo_items(data: Any, as_json: bool) -> None:
    if as_json or not isinstance(data, list):
        echo_json(data)
        return
    for item in data:
        if isinstance(item, dict):
            click.echo(f"{item.get('id')}\t{item.get('name', '')}")
        else:
            click.echo(str(item))


@click.command()
@home_option
def mode(home_id: int | None) -> None:
    """Resolve and show the transport mode."""

    async def _mode(ctx: HomeLinkContext) -> TransportMode:
        await resolve_mode(ctx, home_id)
        return ctx.mode

    resolved = run_with_context(_mode)
    click.echo(f"{resolved.label} ({resolved.value})")


@click.command()
@click.argument("home_id", type=int)
def use(home_id: int) -> None:
    """Select the active home."""
    get_store().set_active_home_id(home_id)
    click.echo(f"Active home set to {home_id}.")


@click.command()
@home_option
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON.")
def homes(home_id: int | None, as_json: bool) -> None:
    """List homes."""

    async def _homes(ctx: HomeLinkContext) -> Any:
        await resolve_mode(ctx, home_id)
        return await ctx.dispatcher.get_homes()

    _echo_items(run_with_context(_homes), as_json)


@click.command()
@click.argument("home_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON.")
def devices(home_id: int, as_json: bool) -> None:
    """List devices of a home."""

    async def _devices(ctx: HomeLinkContext) -> Any:
        await resolve_mode(ctx, home_id)
        return await ctx.dispatcher.get_devices(home_id)

    _echo_items(run_with_context(_devices), as_json)


@click.command()
@click.argument("home_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON.")
def scenes(home_id: int, as_json: bool) -> None:
    """List scenes of a home."""

    async def _scenes(ctx: HomeLinkContext) -> Any:
        await resolve_mode(ctx, home_id)
        return await ctx.dispatcher.get_scenes(home_id)

    _echo_items(run_with_context(_scenes), as_json)


@click.command()
@click.argument("home_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON.")
def automations(home_id: int, as_json: bool) -> None:
    """List automations of a home."""

    async def _automations(ctx: HomeLinkContext) -> Any:
        await resolve_mode(ctx, home_id)
        return await ctx.dispatcher.get_automations(home_id)

    _echo_items(run_with_context(_automations), as_json)


@click.command()
@click.argument("entity_id", type=int)
@click.argument("command")
@click.argument("value", required=False)
@home_option
def control(entity_id: int, command: str, value: str | None, home_id: int | None) -> None:
    """Send COMMAND (with optional VALUE) to an entity.

    VALUE is parsed as JSON when possible: 50, true, "ON".
    """

    async def _control(ctx: HomeLinkContext) -> Any:
        await resolve_mode(ctx, home_id)
        return await ctx.dispatcher.control_entity(entity_id, command, parse_value(value))

    result = run_with_context(_control)
    if result is not None:
        echo_json(result)
    else:
        click.echo("OK")


@click.group()
def scene() -> None:
    """Scene actions."""


@scene.command("run")
@click.argument("scene_id", type=int)
@home_option
def run_scene(scene_id: int, home_id: int | None) -> None:
    """Run a scene."""

    async def _run(ctx: HomeLinkContext) -> Any:
        await resolve_mode(ctx, home_id)
        return await ctx.dispatcher.run_scene(scene_id)

    run_with_context(_run)
    click.echo(f"Scene {scene_id} started.")


def _print_event(data: dict[str, Any]) -> None:
    event = EntityStateEvent.from_message(data)
    if event is not None:
        click.echo(f"entity {event.entity_id}: {json.dumps(event.state)}")
    else:
        click.echo(json.dumps(data))


@click.command()
@click.argument("home_id", type=int)
def listen(home_id: int) -> None:
    """Stream live events of a home until interrupted."""

    async def _listen(ctx: HomeLinkContext) -> None:
        await resolve_mode(ctx, home_id)
        if ctx.mode is TransportMode.OFFLINE:
            raise UnreachableError("No network connection available")
        click.echo(f"Listening via {ctx.mode.label}. Press Ctrl+C to stop.", err=True)
        await ctx.start_channel(home_id, _print_event)
        await ctx.channel.wait_stopped()
        click.echo("Event channel closed.", err=True)

    try:
        run_with_context(_listen)
    except KeyboardInterrupt:
        click.echo("Stopped.", err=True)
