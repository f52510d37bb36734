"""Lockfile core class --- deterministic serialization and atomic writes.

The ``Lockfile`` class wraps a ``LockState`` and renders it as the
``lockwise.lock`` JSON document.

Determinism guarantee: ``to_json()`` carries no timestamp, packages follow
the canonical ``ResolutionSet`` order and every dictionary key is sorted.
The same lock state always renders byte-identical text, so lockfile diffs
only ever show real changes.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from lockwise import _PRODUCT_ID, __version__
from lockwise.core.dependency.catalog import Dependency, DependencyKind, PackageVersion
from lockwise.core.lockfile.models import KNOWN_SECTIONS, LockState
from lockwise.core.lockfile.operations import lockfiles_equal, stamp_of

logger = logging.getLogger(__name__)

LOCKFILE_NAME = "lockwise.lock"


def _dependency_to_dict(dep: Dependency, root: bool = False) -> dict[str, Any]:
    entry: dict[str, Any] = {"name": dep.name, "requirement": str(dep.requirement)}
    if dep.platforms:
        entry["platforms"] = sorted(p.name for p in dep.platforms)
    if dep.kind is not DependencyKind.RUNTIME:
        entry["kind"] = dep.kind.value
    if root:
        entry["groups"] = sorted(dep.groups)
        entry["source"] = dep.source.key if dep.source else None
    return entry


def _package_to_dict(spec: PackageVersion) -> dict[str, Any]:
    return {
        "name": spec.name,
        "version": str(spec.version),
        "platform": spec.platform.name,
        "source": spec.source.key if spec.source else None,
        "dependencies": [
            _dependency_to_dict(d)
            for d in sorted(spec.dependencies, key=lambda d: (d.name, str(d.requirement)))
        ],
    }


class Lockfile:
    """The ``lockwise.lock`` document for one ``LockState``.

    Example::

        lf = Lockfile(state)
        lf.write(Path("lockwise.lock"))
        again = Lockfile.read(Path("lockwise.lock"))
        assert again.to_json() == lf.to_json()
    """

    LOCKFILE_VERSION: str = "1.0"

    def __init__(self, state: LockState | None = None) -> None:
        self._state = state or LockState()

    @property
    def state(self) -> LockState:
        return self._state

    @property
    def package_names(self) -> list[str]:
        """Sorted names of every locked package."""
        return self._state.resolution.names

    @property
    def package_count(self) -> int:
        return len(self._state.resolution)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dict matching the lockfile schema.

        Unknown sections carried on the state are emitted unchanged; they
        never override a known section.
        """
        state = self._state
        data: dict[str, Any] = {
            key: value for key, value in state.extra.items() if key not in KNOWN_SECTIONS
        }
        data.update({
            "lockfile_version": self.LOCKFILE_VERSION,
            "generated_by": _PRODUCT_ID,
            "lockwise_version": __version__,
            "sources": {
                s.key: {"kind": s.kind, "location": s.location, "digest": s.digest}
                for s in state.sources
            },
            "platforms": sorted({p.name for p in state.platforms}),
            "dependencies": [
                _dependency_to_dict(d, root=True)
                for d in sorted(state.dependencies, key=lambda d: d.name)
            ],
            "packages": [_package_to_dict(s) for s in state.resolution],
        })
        return data

    def to_json(self, indent: int = 2) -> str:
        """Serialize to the on-disk JSON text (with a trailing newline)."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True) + "\n"

    def write(self, path: Path) -> None:
        """Write the lockfile atomically.

        The text goes to a sibling temporary file which then replaces
        *path*, so readers never observe a partially written lockfile.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(self.to_json(), encoding="utf-8")
            os.replace(str(temp_path), str(path))
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise
        logger.debug("Wrote %s (%d packages)", path, self.package_count)

    def write_if_changed(self, path: Path, preserve_unknown_sections: bool = True) -> bool:
        """Write only when the rendered text differs from what is on disk.

        Returns:
            True if the file was written.
        """
        proposed = self.to_json()
        if path.exists():
            current = path.read_text(encoding="utf-8")
            if lockfiles_equal(current, proposed, preserve_unknown_sections):
                logger.debug("Lockfile %s is up to date", path)
                return False
            previous = stamp_of(current)
            if previous is not None and previous > stamp_of(proposed):
                logger.warning(
                    "%s was written by lockwise %s; rewriting it with the older "
                    "lockwise %s",
                    path, previous, __version__,
                )
        self.write(path)
        return True
