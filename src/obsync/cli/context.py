"""Shared helpers for CLI commands: settings, registry and declared input."""

import sys
from typing import Optional, Tuple

import click
from rich.console import Console

from obsync.config.models import Settings
from obsync.config.parser import ConfigValidationError, load_settings
from obsync.orchestrator.registry import ProviderRegistry, build_registry, load_declared
from obsync.providers.base import ResourceList
from obsync.utils.errors import ReconcileError

console = Console()


def load_config(config_path: Optional[str]) -> Settings:
    """Load and validate configuration, exiting on failure."""
    try:
        return load_settings(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(str(e))
        sys.exit(1)


def get_registry(ctx: click.Context) -> ProviderRegistry:
    """Build the provider registry once per invocation."""
    if 'registry' not in ctx.obj:
        ctx.obj['registry'] = build_registry(ctx.obj['settings'], session=ctx.obj.get('session'))
    return ctx.obj['registry']


def load_resources(ctx: click.Context, path: str, kinds: Tuple[str, ...]) -> ResourceList:
    """Parse the declared file, exiting with a message on failure."""
    registry = get_registry(ctx)
    try:
        return registry.parse(load_declared(path), kinds=list(kinds) or None)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except ReconcileError as e:
        console.print(f"[red]Error:[/red] {e.to_user_message()}")
        sys.exit(1)


def kind_option(f):
    """Add a repeatable --kind filter to a command."""
    return click.option('--kind', 'kinds', multiple=True,
                        help='Restrict to a provider (repeatable)')(f)
