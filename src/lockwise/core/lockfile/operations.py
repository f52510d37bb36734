"""Lockfile operations --- deserialization, validation, and diffing.

This module extends the ``Lockfile`` class (defined in ``lockfile.py``) with
classmethods and instance methods for:

- **Deserialization:** ``from_dict``, ``from_json``, ``read`` (disk).
- **Validation:** internal consistency checks of the locked graph.
- **Diffing:** structured comparison of two lockfiles.

These are attached to the ``Lockfile`` class at import time (in
``__init__.py``). ``lockfiles_equal`` and ``stamp_of`` work on raw text and
stay plain functions.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from lockwise.core.dependency.catalog import (
    Dependency,
    DependencyKind,
    PackageVersion,
    Source,
)
from lockwise.core.dependency.platform import Platform
from lockwise.core.dependency.resolution_set import ResolutionSet
from lockwise.core.dependency.version import Requirement, Version
from lockwise.core.lockfile.models import KNOWN_SECTIONS, LockState
from lockwise.exceptions import LockfileError, ParseError


def _expect(data: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key, default)
    if not isinstance(value, kind):
        raise LockfileError(
            f"Lockfile field {key!r} must be {kind.__name__}, got {type(value).__name__}"
        )
    return value


def _source_from_key(key: str | None, sources: dict[str, Source]) -> Source | None:
    """Look up a source key, falling back to parsing ``kind:location``."""
    if key is None:
        return None
    if key in sources:
        return sources[key]
    kind, sep, location = str(key).partition(":")
    if not sep:
        raise LockfileError(f"Malformed source key {key!r}")
    try:
        return Source(kind, location)
    except ValueError as exc:
        raise LockfileError(str(exc)) from exc


def _dependency_from_dict(entry: Any, sources: dict[str, Source]) -> Dependency:
    if not isinstance(entry, dict) or "name" not in entry:
        raise LockfileError(f"Malformed dependency entry: {entry!r}")
    try:
        kind = DependencyKind(entry.get("kind", DependencyKind.RUNTIME.value))
    except ValueError as exc:
        raise LockfileError(f"Unknown dependency kind in {entry!r}") from exc
    return Dependency(
        name=str(entry["name"]),
        requirement=Requirement.parse(entry.get("requirement")),
        kind=kind,
        platforms=tuple(Platform.parse(p) for p in entry.get("platforms", [])),
        source=_source_from_key(entry.get("source"), sources),
        groups=tuple(entry.get("groups", ("default",))),
    )


def _package_from_dict(entry: Any, sources: dict[str, Source]) -> PackageVersion:
    if not isinstance(entry, dict) or "name" not in entry or "version" not in entry:
        raise LockfileError(f"Malformed package entry: {entry!r}")
    deps = entry.get("dependencies", [])
    if not isinstance(deps, list):
        raise LockfileError(f"Package {entry['name']!r} has malformed dependencies")
    return PackageVersion(
        name=str(entry["name"]),
        version=Version.parse(str(entry["version"])),
        platform=Platform.parse(entry.get("platform")),
        source=_source_from_key(entry.get("source"), sources),
        dependencies=tuple(_dependency_from_dict(d, sources) for d in deps),
    )


def _from_dict(cls: type, data: dict[str, Any]) -> Any:
    """Deserialize a lockfile from a dict (parsed JSON).

    Sections this version does not know are kept on ``state.extra``.

    Raises:
        LockfileError: If the structure is malformed.
        ParseError: If a version or requirement inside is malformed.
    """
    if not isinstance(data, dict):
        raise LockfileError("Lockfile root must be a JSON object")

    sources: dict[str, Source] = {}
    for key, entry in _expect(data, "sources", dict, {}).items():
        if not isinstance(entry, dict):
            raise LockfileError(f"Malformed source entry {key!r}")
        try:
            sources[key] = Source(
                str(entry.get("kind", "")), str(entry.get("location", "")), entry.get("digest")
            )
        except ValueError as exc:
            raise LockfileError(str(exc)) from exc

    state = LockState(
        dependencies=tuple(
            _dependency_from_dict(d, sources) for d in _expect(data, "dependencies", list, [])
        ),
        resolution=ResolutionSet(
            _package_from_dict(p, sources) for p in _expect(data, "packages", list, [])
        ),
        sources=tuple(sources.values()),
        platforms=tuple(Platform.parse(p) for p in _expect(data, "platforms", list, [])),
        tool_version=str(data.get("lockwise_version", "0")),
        extra={k: v for k, v in data.items() if k not in KNOWN_SECTIONS},
    )
    return cls(state)


def _from_json(cls: type, json_str: str) -> Any:
    """Deserialize from a JSON string.

    Raises:
        LockfileError: If the string is not valid JSON or not a lockfile.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise LockfileError(f"Lockfile is not valid JSON: {exc}") from exc
    return cls.from_dict(data)


def _read(cls: type, path: Path) -> Any:
    """Read a lockfile from disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        LockfileError: If the content is not a valid lockfile.
    """
    text = path.read_text(encoding="utf-8")
    return cls.from_json(text)


def _validate(self: Any) -> list[str]:
    """Validate the lockfile for internal consistency.

    Performs the following checks:

    1. **Dependency completeness:** every runtime dependency of a locked
       package is itself locked at a satisfying version.
    2. **Single version:** no ``(name, platform)`` pair is locked twice.
    3. **Known sources:** every package source is listed in ``sources``.
    4. **Roots satisfied:** every declared dependency has a locked package
       meeting its requirement.

    Returns:
        List of validation error messages. Empty means the lockfile is
        valid.
    """
    errors: list[str] = []
    state: LockState = self.state
    resolution = state.resolution
    platforms = list(state.platforms)

    # 1. Dependency completeness
    for spec in resolution:
        for dep in spec.runtime_dependencies():
            if platforms and not dep.target_platforms(platforms):
                continue
            locked = resolution[dep.name]
            if not locked:
                errors.append(
                    f"Package {spec.full_name!r} depends on {dep.name!r} which is "
                    f"not in the lockfile"
                )
            elif not any(dep.requirement.satisfied_by(s.version) for s in locked):
                errors.append(
                    f"Package {spec.full_name!r} requires {dep} but the lockfile has "
                    f"{', '.join(str(s.version) for s in locked)}"
                )

    # 2. Single version per platform
    for name, platform in resolution.duplicates():
        errors.append(f"Package {name!r} is locked at several versions for {platform}")

    # 3. Known sources
    known = {s.key for s in state.sources}
    for spec in resolution:
        if spec.source is not None and spec.source.key not in known:
            errors.append(
                f"Package {spec.full_name!r} references unknown source {spec.source.key!r}"
            )

    # 4. Roots satisfied
    for dep in state.dependencies:
        if not dep.is_runtime:
            continue
        if not any(s.satisfies(dep) for s in resolution[dep.name]):
            errors.append(f"Dependency {dep} is not satisfied by the lockfile")

    return errors


def _diff(self: Any, other: Any) -> dict[str, Any]:
    """Compare two lockfiles and return differences.

    - **added**: packages present in ``other`` but not in ``self``.
    - **removed**: packages present in ``self`` but not in ``other``.
    - **changed**: packages present in both with a different version,
      source, or platform set.

    Args:
        other: The lockfile to compare against (typically the newer one).

    Returns:
        Dict with keys 'added', 'removed', 'changed'.
    """
    old_set: ResolutionSet = self.state.resolution
    new_set: ResolutionSet = other.state.resolution
    self_names = set(old_set.names)
    other_names = set(new_set.names)

    fields = {
        "version": lambda specs: sorted({str(s.version) for s in specs}),
        "source": lambda specs: sorted({s.source.key if s.source else "" for s in specs}),
        "platforms": lambda specs: sorted({s.platform.name for s in specs}),
    }
    changes: list[dict[str, Any]] = []
    for name in sorted(self_names & other_names):
        old, new = old_set[name], new_set[name]
        for field_name, render in fields.items():
            if render(old) != render(new):
                changes.append({
                    "name": name,
                    "field": field_name,
                    "old": render(old),
                    "new": render(new),
                })

    return {
        "added": sorted(other_names - self_names),
        "removed": sorted(self_names - other_names),
        "changed": changes,
    }


def stamp_of(text: str) -> Version | None:
    """Return the tool version stamped in lockfile *text*, if readable."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or "lockwise_version" not in data:
        return None
    try:
        return Version.parse(str(data["lockwise_version"]))
    except ParseError:
        return None


def lockfiles_equal(current: str, proposed: str, preserve_unknown_sections: bool) -> bool:
    """Decide whether writing *proposed* over *current* would change anything.

    Without ``preserve_unknown_sections`` the texts must match exactly.
    With it, unknown top-level sections and the tool version stamp are
    ignored, so a lockfile touched by another tool version is not rewritten
    for no reason.
    """
    if not preserve_unknown_sections:
        return current == proposed
    try:
        old = json.loads(current)
        new = json.loads(proposed)
    except json.JSONDecodeError:
        return False
    if not isinstance(old, dict) or not isinstance(new, dict):
        return False
    compared = set(KNOWN_SECTIONS) - {"lockwise_version"}
    return {k: v for k, v in old.items() if k in compared} == {
        k: v for k, v in new.items() if k in compared
    }
