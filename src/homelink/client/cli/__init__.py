"""Command-line interface for HomeLink.

This module provides the main CLI entry point and assembles all commands.

Commands:
- server: Local server configuration (set, show, clear)
- login / logout: Local server session
- cloud: Cloud relay session, preferences and pairing
- mode: Show the resolved transport mode
- use: Select the active home
- homes, devices, scenes, automations: Listings
- control: Send a control command to an entity
- scene run: Run a scene
- listen: Stream live events
"""

from __future__ import annotations

import click

from homelink.client.cli.cloud import cloud
from homelink.client.cli.config import (
    get_log_file,
    get_store,
    setup_logging,
)
from homelink.client.cli.control import (
    automations,
    control,
    devices,
    homes,
    listen,
    mode,
    scene,
    scenes,
    use,
)
from homelink.client.cli.server import login, logout, server


@click.group()
@click.version_option(package_name="homelink")
@click.option("--verbose", "-v", is_flag=True, help="Show informational log messages.")
@click.option("--log-file", is_flag=True, help="Also write a debug log to the config directory.")
def cli(verbose: bool, log_file: bool) -> None:
    """HomeLink - home automation client with local/cloud failover."""
    setup_logging(verbose, get_log_file() if log_file else None)


# Configuration and sessions
cli.add_command(server)
cli.add_command(login)
cli.add_command(logout)
cli.add_command(cloud)

# Transport
cli.add_command(mode)
cli.add_command(use)

# Home control
cli.add_command(homes)
cli.add_command(devices)
cli.add_command(scenes)
cli.add_command(automations)
cli.add_command(control)
cli.add_command(scene)
cli.add_command(listen)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "get_store",
    "main",
]
