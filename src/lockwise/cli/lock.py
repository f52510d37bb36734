"""``lockwise lock <project>`` --- Resolve and write lockwise.lock.

Reads ``lockwise.yaml`` and ``index.yaml`` from the project directory,
reconciles them against the existing lockfile, and writes a deterministic
``lockwise.lock`` when anything changed.

Exit Codes:
    0 --- Lockfile is up to date or was written.
    1 --- Dependency resolution failed.
    2 --- Frozen lockfile would change, or the input is invalid.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from lockwise.core.lockfile import Lockfile
from lockwise.core.reconciler import Reconciler
from lockwise.exceptions import (
    ConfigError,
    FrozenDrift,
    LockfileError,
    ParseError,
    ResolutionError,
)
from lockwise.loader import INDEX_NAME, MANIFEST_NAME, load_index, load_manifest
from lockwise.settings import CONFIG_FILE_NAME, Settings, UnlockRequest, load_settings


def load_project_settings(project: Path, config: str | None) -> Settings:
    """Read settings from ``--config`` or the project's config file, if any."""
    if config:
        return load_settings(Path(config))
    default = project / CONFIG_FILE_NAME
    if default.exists():
        return load_settings(default)
    return Settings()


@click.command("lock")
@click.argument("project_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--frozen", is_flag=True, help="Fail instead of changing the lockfile.")
@click.option(
    "--update", "update", multiple=True, metavar="NAME",
    help="Allow NAME to move to a newer version (repeatable).",
)
@click.option("--update-all", is_flag=True, help="Re-resolve every package from scratch.")
@click.option("--patch", "level", flag_value="patch", help="Prefer updates within the patch level.")
@click.option("--minor", "level", flag_value="minor", help="Prefer updates within the minor level.")
@click.option("--major", "level", flag_value="major", help="Prefer updates within the major level.")
@click.option("--strict", is_flag=True, help="Never leave the update level.")
@click.option("--minimal", is_flag=True, help="Prefer the lowest allowed version.")
@click.option(
    "--only-move-forward", is_flag=True,
    help="Never select a version older than the locked one.",
)
@click.option(
    "--config", "config", type=click.Path(exists=True, dir_okay=False), default=None,
    help=f"Settings file (default: <project>/{CONFIG_FILE_NAME}).",
)
def lock_command(
    project_dir: str,
    frozen: bool,
    update: tuple[str, ...],
    update_all: bool,
    level: str | None,
    strict: bool,
    minimal: bool,
    only_move_forward: bool,
    config: str | None,
) -> None:
    """Resolve the dependencies of PROJECT_DIR and write lockwise.lock.

    Packages already in the lockfile keep their versions unless they are
    named with --update, depend on something that changed, or --update-all
    is given.

    Exit code 0 on success, 1 on resolution failure, 2 on frozen drift or
    invalid input.
    """
    from lockwise.cli.output import (
        print_frozen_drift,
        print_lock_summary,
        print_resolution_failure,
    )

    project = Path(project_dir)
    try:
        unlock = None
        if update_all:
            unlock = UnlockRequest.everything()
        elif update:
            unlock = UnlockRequest.of(names=update)
        settings = load_project_settings(project, config).merged(
            frozen=frozen or None,
            unlock=unlock,
            level=level,
            strict=strict or None,
            minimal=minimal or None,
            only_move_forward=only_move_forward or None,
        )
        manifest = load_manifest(project / MANIFEST_NAME)
        index = load_index(project / INDEX_NAME, manifest)
        lock_path = project / settings.lockfile
        previous = Lockfile.read(lock_path).state if lock_path.exists() else None

        reconciler = Reconciler(
            manifest.dependencies,
            index,
            sources=manifest.sources,
            platforms=manifest.platforms,
            settings=settings,
        )
        result = reconciler.reconcile(previous)
    except FrozenDrift as exc:
        print_frozen_drift(exc)
        sys.exit(2)
    except ResolutionError as exc:
        print_resolution_failure(exc)
        sys.exit(1)
    except (ConfigError, LockfileError, ParseError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    written = False
    if not settings.frozen:
        written = result.lockfile.write_if_changed(lock_path)
    print_lock_summary(result, lock_path, written)
    sys.exit(0)
