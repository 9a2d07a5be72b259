"""Diff command for showing changes without applying them."""

import sys
from typing import List

import click
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from obsync.cli.context import console, get_registry, kind_option, load_resources
from obsync.orchestrator.reconciler import Reconciler, ResourceDiff
from obsync.providers.base import ChangeType
from obsync.utils.logging import get_logger

logger = get_logger(__name__)


@click.command()
@click.argument('declared', type=click.Path())
@kind_option
@click.option('--json-output', is_flag=True, help='Output in JSON format')
@click.pass_context
def diff(ctx, declared, kinds, json_output):
    """Show what an apply would change, without writing anything."""
    resources = load_resources(ctx, declared, kinds)
    diffs = Reconciler(get_registry(ctx)).diff(resources)

    if json_output:
        _output_json(diffs)
    else:
        _output_rich(diffs, declared)

    if any(d.error for d in diffs):
        sys.exit(1)


def _group(diffs: List[ResourceDiff], change_type: ChangeType) -> List[ResourceDiff]:
    return [d for d in diffs if d.change_type == change_type]


def _output_json(diffs: List[ResourceDiff]):
    """Output diff in JSON format."""
    output = {
        'summary': {
            'to_add': len(_group(diffs, ChangeType.CREATE)),
            'to_change': len(_group(diffs, ChangeType.UPDATE)),
            'unchanged': len(_group(diffs, ChangeType.NO_CHANGE)),
            'failed': len([d for d in diffs if d.error]),
        },
        'resources': []
    }

    for d in diffs:
        output['resources'].append({
            'kind': d.key.kind,
            'uid': d.key.uid,
            'action': d.change_type.value if d.change_type else 'error',
            'diff': d.unified,
            'error': d.error.message if d.error else None,
        })

    console.print_json(data=output)


def _output_rich(diffs: List[ResourceDiff], declared: str):
    """Output diff in rich formatted text."""
    console.print(Panel(f"Diff for {declared}", style="bold blue"))
    console.print()

    creates = _group(diffs, ChangeType.CREATE)
    updates = _group(diffs, ChangeType.UPDATE)
    failures = [d for d in diffs if d.error]

    summary = Text()
    summary.append("Plan: ", style="bold")
    summary.append(f"{len(creates)} to add", style="green" if creates else "dim")
    summary.append(", ")
    summary.append(f"{len(updates)} to change", style="yellow" if updates else "dim")
    if failures:
        summary.append(", ")
        summary.append(f"{len(failures)} failed", style="red")
    console.print(summary)
    console.print()

    if not creates and not updates and not failures:
        console.print("[dim]No changes. Remote state matches declared resources.[/dim]")
        return

    for d in creates:
        console.print(f"[green]+ {d.key}[/green] (new)")

    for d in updates:
        console.print(f"[yellow]~ {d.key}[/yellow]")
        console.print(Syntax(d.unified, "diff"))

    for d in failures:
        console.print(f"[red]! {d.key}[/red] {d.error.message}")
