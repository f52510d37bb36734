"""Change detection between the current inputs and a previous lock.

``detect_changes`` compares what is declared now (dependencies, sources,
platforms) and what the index offers for content-addressed sources against
a ``LockState``. The result says *what* changed; deciding what to unlock
is the reconciler's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from lockwise.core.dependency.catalog import Dependency, Index, PackageVersion, Source
from lockwise.core.dependency.platform import Platform
from lockwise.core.lockfile.models import LockState


def _signature(dep: Dependency) -> tuple:
    """Everything about a declaration that affects resolution or the lock."""
    return (
        dep.requirement,
        dep.kind,
        tuple(sorted(p.name for p in dep.platforms)),
        dep.source.key if dep.source else None,
        dep.source.digest if dep.source else None,
        tuple(sorted(dep.groups)),
    )


def _edges(spec: PackageVersion) -> list[tuple]:
    return sorted((d.name, str(d.requirement), d.kind.value) for d in spec.dependencies)


@dataclass(frozen=True)
class Changes:
    """What differs between the current inputs and the previous lock.

    Attributes:
        added: Root dependency names declared now but not in the lock.
        removed: Root dependency names in the lock but no longer declared.
        changed: Root dependency names whose declaration changed.
        stale: Added or changed runtime roots the locked packages no longer
            satisfy; only these force their exclusive subgraph to move.
        added_sources: Source keys declared now but not in the lock.
        removed_sources: Source keys in the lock but no longer declared.
        changed_sources: Source keys whose content digest changed.
        added_platforms: Platforms targeted now but not in the lock.
        removed_platforms: Platforms in the lock but no longer targeted.
        local_changes: Locked packages from content-addressed sources that
            the index no longer reproduces (version or dependencies moved).
        incomplete: The locked packages do not satisfy the roots that were
            neither added nor changed.
    """

    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    changed: tuple[str, ...] = ()
    stale: tuple[str, ...] = ()
    added_sources: tuple[str, ...] = ()
    removed_sources: tuple[str, ...] = ()
    changed_sources: tuple[str, ...] = ()
    added_platforms: tuple[str, ...] = ()
    removed_platforms: tuple[str, ...] = ()
    local_changes: tuple[str, ...] = ()
    incomplete: bool = False

    @property
    def dependencies_changed(self) -> bool:
        return bool(self.added or self.removed or self.changed)

    @property
    def sources_changed(self) -> bool:
        return bool(self.added_sources or self.removed_sources or self.changed_sources)

    @property
    def any(self) -> bool:
        return (
            self.dependencies_changed
            or self.sources_changed
            or bool(self.added_platforms or self.removed_platforms)
            or bool(self.local_changes)
            or self.incomplete
        )

    def reasons(self) -> list[str]:
        """Human readable reasons, in a fixed order."""
        reasons: list[str] = []
        if self.dependencies_changed:
            parts = []
            for label, names in (
                ("added", self.added), ("removed", self.removed), ("changed", self.changed)
            ):
                if names:
                    parts.append(f"{label}: {', '.join(names)}")
            reasons.append(f"the dependencies changed ({'; '.join(parts)})")
        if self.sources_changed:
            keys = sorted(set(self.added_sources + self.removed_sources + self.changed_sources))
            reasons.append(f"the list of sources changed ({', '.join(keys)})")
        if self.added_platforms:
            reasons.append(f"you added a new platform ({', '.join(self.added_platforms)})")
        if self.removed_platforms:
            reasons.append(f"you removed a platform ({', '.join(self.removed_platforms)})")
        if self.local_changes:
            reasons.append(
                f"the packages from local sources changed ({', '.join(self.local_changes)})"
            )
        if self.incomplete:
            reasons.append("the lockfile does not satisfy the declared dependencies")
        return reasons


def detect_changes(
    dependencies: Iterable[Dependency],
    sources: Iterable[Source],
    platforms: Iterable[Platform],
    previous: LockState,
    index: Index,
) -> Changes:
    """Compare the current inputs with *previous*.

    Args:
        dependencies: Root dependencies as declared now.
        sources: Sources declared now.
        platforms: Target platforms now.
        previous: The lock state read from disk.
        index: Current index, consulted for content-addressed sources.
    """
    deps = list(dependencies)
    targets = list(platforms)
    current = {d.name: d for d in deps}
    locked = {d.name: d for d in previous.dependencies}
    resolution = previous.resolution

    added = sorted(set(current) - set(locked))
    removed = sorted(set(locked) - set(current))
    changed = sorted(
        name for name in set(current) & set(locked)
        if _signature(current[name]) != _signature(locked[name])
    )
    stale = sorted(
        name for name in added + changed
        if current[name].is_runtime
        and not any(s.satisfies(current[name]) for s in resolution[name])
    )

    now_sources = {s.key: s for s in sources}
    old_sources = {s.key: s for s in previous.sources}
    changed_sources = sorted(
        key for key in set(now_sources) & set(old_sources)
        if not now_sources[key].equivalent(old_sources[key])
    )

    now_platforms = {p.name for p in targets}
    old_platforms = {p.name for p in previous.platforms}

    local_changes: list[str] = []
    for spec in resolution:
        if spec.source is None or not spec.source.is_local:
            continue
        source = now_sources.get(spec.source.key)
        if source is None or not source.equivalent(spec.source):
            continue
        offered = [
            s for s in index.for_source(source).specs_for(spec.name)
            if s.version == spec.version and s.platform.name == spec.platform.name
        ]
        if not any(_edges(s) == _edges(spec) for s in offered):
            if spec.name not in local_changes:
                local_changes.append(spec.name)

    settled = set(added) | set(changed)
    runtime_roots = [d for d in deps if d.is_runtime and d.name not in settled]
    incomplete = bool(runtime_roots) and not resolution.satisfies(
        runtime_roots, targets or None
    )

    return Changes(
        added=tuple(added),
        removed=tuple(removed),
        changed=tuple(changed),
        stale=tuple(stale),
        added_sources=tuple(sorted(set(now_sources) - set(old_sources))),
        removed_sources=tuple(sorted(set(old_sources) - set(now_sources))),
        changed_sources=tuple(changed_sources),
        added_platforms=tuple(sorted(now_platforms - old_platforms)),
        removed_platforms=tuple(sorted(old_platforms - now_platforms)),
        local_changes=tuple(sorted(local_changes)),
        incomplete=incomplete,
    )
