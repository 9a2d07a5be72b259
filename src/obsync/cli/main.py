"""Main CLI entry point."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.table import Table
from rich.syntax import Syntax

from obsync.cli.context import console, get_registry, kind_option, load_config, load_resources
from obsync.cli.diff import diff
from obsync.config.models import Settings
from obsync.orchestrator.reconciler import ApplyReport, Reconciler
from obsync.providers.base import ApplyOutcome
from obsync.utils.errors import ReconcileError, error_handler
from obsync.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

OUTCOME_STYLES = {
    ApplyOutcome.ADDED: "green",
    ApplyOutcome.UPDATED: "green",
    ApplyOutcome.UNCHANGED: "yellow",
    ApplyOutcome.FAILED: "red",
    ApplyOutcome.SKIPPED: "dim",
    ApplyOutcome.PUBLISHED: "cyan",
}


@click.group()
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Path to obsync.yaml')
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.option('--log-dir', default='.obsync/logs', help='Directory for JSON log files')
@click.option('--no-log-file', is_flag=True, help='Disable JSON log files')
@click.pass_context
def cli(ctx, config_path, log_level, log_dir, no_log_file):
    """Reconcile declared dashboards, datasources and rule groups."""
    ctx.ensure_object(dict)
    setup_logging(log_level, None if no_log_file else log_dir)

    if 'settings' not in ctx.obj:
        ctx.obj['settings'] = load_config(config_path)


cli.add_command(diff)


@cli.command()
@click.pass_context
def providers(ctx):
    """List registered providers and the paths they consume."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Provider", style="cyan")
    table.add_column("JSON paths")
    table.add_column("Format")

    for provider in get_registry(ctx).providers():
        table.add_row(provider.name, ", ".join(provider.json_paths), provider.extension)

    console.print(table)


@cli.command()
@click.argument('declared', type=click.Path())
@kind_option
@click.pass_context
def show(ctx, declared, kinds):
    """Render declared resources as they would be pushed."""
    registry = get_registry(ctx)
    for resource in load_resources(ctx, declared, kinds):
        provider = registry.get(resource.kind)
        console.rule(f"[cyan]{resource.key}[/cyan]")
        console.print(Syntax(provider.get_representation(resource.uid, resource), provider.extension))


@cli.command()
@click.argument('kind')
@click.argument('uid')
@click.pass_context
def get(ctx, kind, uid):
    """Print the remote state of one resource."""
    registry = get_registry(ctx)
    try:
        provider = registry.get(kind)
        representation = provider.get_remote_representation(uid)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except ReconcileError as e:
        error_handler.log_error(e)
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)

    click.echo(representation)


@cli.command()
@click.argument('declared', type=click.Path())
@click.argument('directory', type=click.Path(file_okay=False))
@kind_option
@click.pass_context
def export(ctx, declared, directory, kinds):
    """Write each declared resource to DIRECTORY/<kind>/<name>.<ext>."""
    registry = get_registry(ctx)
    written = 0
    for resource in load_resources(ctx, declared, kinds):
        provider = registry.get(resource.kind)
        target = Path(directory) / resource.kind / f"{_safe_name(resource.filename)}.{provider.extension}"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(provider.get_representation(resource.uid, resource))
        written += 1
        logger.debug(f"Wrote {target}")

    console.print(f"Exported {written} resource(s) to {directory}")


@cli.command()
@click.argument('declared', type=click.Path())
@kind_option
@click.option('--fail-fast', is_flag=True, help='Stop after the first failed resource')
@click.pass_context
def apply(ctx, declared, kinds, fail_fast):
    """Create or update declared resources on their backends."""
    resources = load_resources(ctx, declared, kinds)
    settings: Settings = ctx.obj['settings']
    reconciler = Reconciler(
        get_registry(ctx),
        fail_fast=fail_fast or settings.reconcile.fail_fast,
        progress_callback=_print_progress,
    )
    _finish(reconciler.apply(resources))


@cli.command()
@click.argument('declared', type=click.Path())
@kind_option
@click.pass_context
def preview(ctx, declared, kinds):
    """Publish previews (dashboard snapshots) of declared resources."""
    resources = load_resources(ctx, declared, kinds)
    settings: Settings = ctx.obj['settings']
    reconciler = Reconciler(
        get_registry(ctx),
        progress_callback=_print_progress,
        snapshot_expires=settings.reconcile.snapshot_expires,
    )
    _finish(reconciler.preview(resources))


def _print_progress(key, outcome: ApplyOutcome, message: Optional[str]):
    style = OUTCOME_STYLES[outcome]
    line = f"{key} [{style}]{outcome.value}[/{style}]"
    if message:
        line += f" [dim]{message}[/dim]"
    console.print(line)


def _finish(report: ApplyReport):
    summary = report.summary()
    console.print(
        ", ".join(f"{count} {name}" for name, count in summary.items() if count) or "Nothing to do"
    )
    for result in report.failed():
        console.print(f"\n[red]{result.error.to_user_message()}[/red]")
    if report.has_failures():
        sys.exit(1)


def _safe_name(name: str) -> str:
    return name.replace("/", "_").replace("\\", "_")


if __name__ == '__main__':
    cli()
