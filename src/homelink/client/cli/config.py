"""Shared helpers for HomeLink CLI commands.

This module provides configuration access, logging setup and the glue
that runs a coroutine against a fresh HomeLinkContext.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import click

from homelink.client.context import HomeLinkContext, get_config_dir
from homelink.client.preferences import PreferenceStore
from homelink.core.errors import HomeLinkError, NotPairedError, UnreachableError

T = TypeVar("T")

LOG_FILE = "homelink.log"


def get_log_file() -> Path:
    return get_config_dir() / LOG_FILE


def get_store() -> PreferenceStore:
    """Get the preference store of the configured directory."""
    return PreferenceStore(get_config_dir())


def setup_logging(verbose: bool, log_path: Path | None = None) -> None:
    """Configure the ``homelink`` logger.

    Args:
        verbose: Log INFO and above to stderr instead of WARNING.
        log_path: Optional file receiving DEBUG and above.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger("homelink")
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.DEBUG if log_path else logging.INFO)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter if verbose else logging.Formatter("%(message)s"))
    stderr_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    root_logger.addHandler(stderr_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True))


def fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def run_with_context(func: Callable[[HomeLinkContext], Awaitable[T]]) -> T:
    """Run ``func`` against a new context and dispose it afterwards.

    HomeLink errors are reported on stderr with exit code 1.
    """

    async def _main() -> T:
        async with HomeLinkContext.create(get_config_dir()) as ctx:
            return await func(ctx)

    try:
        return asyncio.run(_main())
    except NotPairedError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Pair your gateway with 'homelink cloud pair'.", err=True)
        sys.exit(1)
    except UnreachableError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Check your connection or run 'homelink mode'.", err=True)
        sys.exit(1)
    except HomeLinkError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


async def resolve_mode(ctx: HomeLinkContext, home_id: int | None) -> None:
    """Resolve the transport for ``home_id`` (default: the active home)."""
    if home_id is None:
        home_id = ctx.preferences.get_active_home_id()
    await ctx.dispatcher.initialize(home_id)
