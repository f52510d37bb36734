"""``lockwise check <project>`` --- Validate an existing lockwise.lock.

Checks the lockfile for internal consistency and reports declared
dependencies it cannot materialize for the project's platforms. Nothing
is resolved and nothing is written.

Exit Codes:
    0 --- The lockfile is valid and complete.
    1 --- The lockfile has problems or packages are missing.
    2 --- The lockfile or manifest could not be read.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from lockwise.core.lockfile import Lockfile
from lockwise.exceptions import ConfigError, LockfileError, ParseError
from lockwise.loader import MANIFEST_NAME, load_manifest
from lockwise.cli.lock import load_project_settings


@click.command("check")
@click.argument("project_dir", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--config", "config", type=click.Path(exists=True, dir_okay=False), default=None,
    help="Settings file naming the lockfile.",
)
@click.option(
    "--group", "group", multiple=True, metavar="GROUP",
    help="Only require packages of GROUP (repeatable; default: every group).",
)
def check_command(project_dir: str, config: str | None, group: tuple[str, ...]) -> None:
    """Validate the lockfile of PROJECT_DIR.

    Exit code 0 when valid, 1 when problems are found, 2 on unreadable
    input.
    """
    from lockwise.cli.output import print_validation

    project = Path(project_dir)
    try:
        settings = load_project_settings(project, config).merged(groups=group or None)
        lock_path = project / settings.lockfile
        if not lock_path.exists():
            click.echo(f"Error: no lockfile at {lock_path}", err=True)
            sys.exit(2)
        lockfile = Lockfile.read(lock_path)
        manifest_path = project / MANIFEST_NAME
        manifest = load_manifest(manifest_path) if manifest_path.exists() else None
    except (ConfigError, LockfileError, ParseError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    errors = lockfile.validate()
    missing: list[str] = []
    if manifest is not None:
        runtime = [d for d in manifest.dependencies if d.is_runtime]
        lockfile.state.resolution.materialize(
            runtime, manifest.platforms, missing, groups=settings.groups
        )

    print_validation(errors, missing, lock_path)
    sys.exit(1 if errors or missing else 0)
