"""Rich output formatting helpers for the lockwise CLI.

Provides consistent terminal output for lock summaries, resolution
failures, frozen-mode drift and lockfile validation.
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from lockwise.core.reconciler import ReconcileResult
from lockwise.exceptions import CyclicDependency, FrozenDrift, NotFound, ResolutionError, VersionConflict

console = Console()


def print_lock_summary(result: ReconcileResult, lock_path: Path, written: bool) -> None:
    """Print the packages of a reconciled lock and what happened to the file.

    Args:
        result: Outcome of the reconciliation.
        lock_path: Where the lockfile lives.
        written: Whether the lockfile was (re)written.
    """
    if result.reused:
        title = "[bold green]Using the existing lockfile[/bold green]"
    else:
        title = "[bold green]Resolution successful[/bold green]"
    console.print(Panel(title, title="Dependency Resolution"))

    for reason in result.reasons:
        console.print(f"  [dim]- {reason}[/dim]")

    if len(result.resolution):
        unlocked = set(result.unlocked)
        table = Table(show_header=True, header_style="bold")
        table.add_column("Package", style="bold")
        table.add_column("Version")
        table.add_column("Platform", style="dim")
        table.add_column("Source", style="dim")
        for spec in result.resolution:
            version = Text(str(spec.version))
            if spec.name in unlocked:
                version.stylize("cyan")
            table.add_row(
                spec.name,
                version,
                spec.platform.name,
                spec.source.key if spec.source else "-",
            )
        console.print(table)
    else:
        console.print("[dim]No packages to resolve.[/dim]")

    if result.missing:
        console.print(
            f"[yellow]Missing for some platforms: {', '.join(result.missing)}[/yellow]"
        )
    if written:
        console.print(f"\nLockfile written to: {lock_path}")
    else:
        console.print(f"\nLockfile is up to date: {lock_path}")


def print_resolution_failure(error: ResolutionError) -> None:
    """Print a resolver failure with its structured details."""
    console.print(Panel("[bold red]Resolution failed[/bold red]", title="Dependency Resolution"))
    if isinstance(error, CyclicDependency):
        console.print(f"  [red]Cycle: {' -> '.join(error.cycle + error.cycle[:1])}[/red]")
    elif isinstance(error, NotFound) and error.available:
        console.print(f"  [red]Available versions: {', '.join(error.available)}[/red]")
    elif isinstance(error, VersionConflict):
        console.print(f"  [red]Conflicting packages: {', '.join(error.names)}[/red]")
    console.print(str(error), markup=False, highlight=False)


def print_frozen_drift(error: FrozenDrift) -> None:
    console.print(Panel("[bold red]Lockfile is frozen[/bold red]", title="Dependency Resolution"))
    for reason in error.reasons:
        console.print(f"  [red]- {reason}[/red]", highlight=False)


def print_validation(errors: list[str], missing: list[str], lock_path: Path) -> None:
    """Print the outcome of ``lockwise check``."""
    if not errors and not missing:
        console.print(f"[bold green]{lock_path} is valid[/bold green]")
        return
    console.print(Panel("[bold red]Lockfile problems[/bold red]", title=str(lock_path)))
    for error in errors:
        console.print(f"  [red]- {error}[/red]", highlight=False)
    for name in missing:
        console.print(f"  [yellow]- missing package: {name}[/yellow]", highlight=False)
