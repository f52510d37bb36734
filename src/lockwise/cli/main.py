"""lockwise CLI --- Deterministic dependency locking.

Entry point for the ``lockwise`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    lock   --- Resolve dependencies and write lockwise.lock.
    check  --- Validate an existing lockwise.lock.

Usage::

    lockwise lock ./my-project
    lockwise lock ./my-project --update rack --patch --strict
    lockwise lock ./my-project --frozen
    lockwise check ./my-project
"""

from __future__ import annotations

import logging

import click

from lockwise import __version__
from lockwise.cli.check import check_command
from lockwise.cli.lock import lock_command


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Log resolver decisions to stderr.")
def cli(verbose: bool) -> None:
    """lockwise: reproducible dependency resolution and lockfiles.

    Resolves declared dependencies into one consistent set of exact
    versions and keeps it stable across runs.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )


# Register all subcommands
cli.add_command(lock_command)
cli.add_command(check_command)
