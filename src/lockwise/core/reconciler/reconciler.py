"""Reconcile declared dependencies with a previous lock.

The reconciler decides how much of a previous lock survives a run:

1. Detect changes between the current inputs and the lock.
2. Compute the unlock set: requested names, packages of requested or
   changed sources, and the part of the graph reachable only through roots
   the lock no longer satisfies.
3. Filter the lock down to a baseline: drop unlocked names, packages of
   removed sources, and anything the current roots no longer reach.
4. Reuse the lock untouched when nothing changed, refuse in frozen mode,
   otherwise resolve with the baseline pinned.
5. Merge the baseline with the resolver output.

Example::

    reconciler = Reconciler(dependencies, index, sources, platforms, settings)
    result = reconciler.reconcile(previous_state)
    Lockfile(result.state).write_if_changed(path)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from lockwise.core.dependency.catalog import Dependency, Index, Source
from lockwise.core.dependency.platform import PURE, Platform
from lockwise.core.dependency.resolution_set import ResolutionSet
from lockwise.core.dependency.resolver import resolve, root_requests
from lockwise.core.dependency.version import Requirement
from lockwise.core.lockfile.lockfile import Lockfile
from lockwise.core.lockfile.models import LockState
from lockwise.core.reconciler.changes import Changes, detect_changes
from lockwise.exceptions import FrozenDrift, ResolutionError
from lockwise.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconciliation.

    Attributes:
        resolution: The final resolution set.
        state: The lock state to persist.
        reused: True when the previous lock was reused without resolving.
        reasons: Why re-resolution happened (empty when reused).
        unlocked: Names that were free to move.
        missing: Root or transitive names with no usable member for some
            target platform, counting only roots in the configured groups.
        changes: Detailed change report (empty without a previous lock).
    """

    resolution: ResolutionSet
    state: LockState
    reused: bool = False
    reasons: tuple[str, ...] = ()
    unlocked: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()
    changes: Changes = field(default_factory=Changes)

    @property
    def lockfile(self) -> Lockfile:
        return Lockfile(self.state)

    def specs_for(self, groups: Iterable[str] = ()) -> ResolutionSet:
        """Packages needed by the runtime roots in *groups*, per target platform.

        An empty *groups* selects every root.
        """
        roots = [d for d in self.state.dependencies if d.is_runtime]
        return self.resolution.materialize(roots, self.state.platforms, groups=groups)


class Reconciler:
    """Turns declared inputs plus a previous lock into a new lock state.

    Args:
        dependencies: Root dependencies as declared.
        index: Catalog of available package versions.
        sources: Declared sources.
        platforms: Target platforms (defaults to the generic platform).
        settings: Frozen mode, unlock request and strategy options.
    """

    def __init__(
        self,
        dependencies: Iterable[Dependency],
        index: Index,
        sources: Iterable[Source] = (),
        platforms: Iterable[Platform] = (),
        settings: Settings | None = None,
    ) -> None:
        self.dependencies = tuple(sorted(dependencies, key=lambda d: d.name))
        self.index = index
        self.sources = tuple(sources)
        self.platforms = tuple(platforms) or (PURE,)
        self.settings = settings or Settings()

    @property
    def runtime_dependencies(self) -> list[Dependency]:
        return [d for d in self.dependencies if d.is_runtime]

    # -- Public API ---------------------------------------------------------

    def reconcile(self, previous: LockState | None = None) -> ReconcileResult:
        """Produce the new lock state.

        Raises:
            FrozenDrift: In frozen mode, when anything changed.
            ResolutionError: When resolution fails or the merge is
                inconsistent.
        """
        settings = self.settings
        if previous is None:
            changes = Changes()
            reasons = ["no lockfile exists"]
        else:
            changes = detect_changes(
                self.dependencies, self.sources, self.platforms, previous, self.index
            )
            reasons = changes.reasons()

        if settings.frozen and (previous is None or changes.any):
            raise FrozenDrift(reasons)

        if previous is not None and not changes.any and settings.unlock.is_empty:
            logger.debug("Found no changes, using resolution from the lockfile")
            return self._finish(previous.resolution, previous, changes, reused=True)

        unlocked, bypass = self._unlock_set(previous, changes)
        if settings.unlock.all:
            reasons.append("you requested to unlock every package")
        elif settings.unlock.names or settings.unlock.sources:
            requested = sorted(settings.unlock.names | settings.unlock.sources)
            reasons.append(f"you requested to unlock {', '.join(requested)}")
        logger.debug(
            "Found changes from the lockfile, re-resolving dependencies because %s",
            ", ".join(reasons),
        )

        baseline = self._baseline(previous, unlocked)
        resolved = self._resolve(previous, baseline, unlocked, bypass)

        merged = baseline.merge(resolved)
        duplicates = merged.duplicates()
        if duplicates:
            listed = ", ".join(f"{name} ({platform})" for name, platform in duplicates)
            raise ResolutionError(f"Resolution left several versions of: {listed}")

        return self._finish(
            merged, previous, changes, reasons=tuple(reasons), unlocked=tuple(sorted(unlocked))
        )

    # -- Steps --------------------------------------------------------------

    def _unlock_set(
        self, previous: LockState | None, changes: Changes
    ) -> tuple[set[str], set[str]]:
        """Return ``(unlocked names, names that bypass the strategy)``."""
        if previous is None:
            return set(), set()
        if self.settings.unlock.all:
            return set(previous.resolution.names), set()

        locked = previous.resolution
        unlocked = set(self.settings.unlock.names)
        for spec in locked:
            if spec.source is not None and spec.source.key in self.settings.unlock.sources:
                unlocked.add(spec.name)

        moved_sources = set(changes.removed_sources) | set(changes.changed_sources)
        bypass = {
            spec.name for spec in locked
            if spec.source is not None and spec.source.key in moved_sources
        }
        bypass |= set(changes.local_changes)
        unlocked |= bypass

        if changes.stale:
            stale_roots = [
                previous.dependency(name) or Dependency(name) for name in changes.stale
            ]
            others = [
                d for d in self.runtime_dependencies if d.name not in set(changes.stale)
            ]
            exclusive = set(locked.for_requirements(stale_roots).names) - set(
                locked.for_requirements(others).names
            )
            unlocked |= exclusive | set(changes.stale)

        logger.debug("Unlocking: %s", ", ".join(sorted(unlocked)) or "(nothing)")
        return unlocked, bypass

    def _baseline(self, previous: LockState | None, unlocked: set[str]) -> ResolutionSet:
        if previous is None or self.settings.unlock.all:
            return ResolutionSet()

        declared = {s.key: s for s in self.sources}
        kept = [
            spec for spec in previous.resolution.without(unlocked)
            if (spec.source is None or spec.source.key in declared)
            and any(spec.platform.matches(p) for p in self.platforms)
        ]
        baseline = ResolutionSet(kept).for_requirements(
            self.runtime_dependencies, skip=unlocked
        )
        logger.debug("Baseline keeps %d of %d locked packages", len(baseline), len(previous.resolution))
        return baseline

    def _resolve(
        self,
        previous: LockState | None,
        baseline: ResolutionSet,
        unlocked: set[str],
        bypass: set[str],
    ) -> ResolutionSet:
        settings = self.settings
        locked = previous.locked_versions() if previous is not None else {}
        if settings.unlock.all:
            updating = None
        else:
            updating = unlocked - bypass

        floors: dict[str, Requirement] = {}
        if settings.only_move_forward and previous is not None:
            for spec in previous.resolution:
                if spec.source is not None and spec.source.is_local:
                    continue
                floors[spec.name] = Requirement.at_least(spec.version)

        overrides = {
            d.name: self.index.for_source(d.source)
            for d in self.runtime_dependencies
            if d.source is not None
        }
        return resolve(
            root_requests(self.runtime_dependencies, self.platforms),
            self.index,
            source_overrides=overrides,
            baseline=baseline,
            strategy=settings.strategy(locked, updating=updating, bypass=bypass),
            floors=floors,
        )

    def _finish(
        self,
        resolution: ResolutionSet,
        previous: LockState | None,
        changes: Changes,
        reused: bool = False,
        reasons: tuple[str, ...] = (),
        unlocked: tuple[str, ...] = (),
    ) -> ReconcileResult:
        missing: list[str] = []
        resolution.materialize(
            self.runtime_dependencies, self.platforms, missing, groups=self.settings.groups
        )
        if missing:
            logger.debug("Missing packages after reconciliation: %s", ", ".join(missing))

        state = LockState(
            dependencies=self.dependencies,
            resolution=resolution,
            sources=self._lock_sources(resolution),
            platforms=tuple(sorted(self.platforms, key=lambda p: p.name)),
            extra=dict(previous.extra) if previous is not None else {},
        )
        return ReconcileResult(
            resolution=resolution,
            state=state,
            reused=reused,
            reasons=reasons,
            unlocked=unlocked,
            missing=tuple(missing),
            changes=changes,
        )

    def _lock_sources(self, resolution: ResolutionSet) -> tuple[Source, ...]:
        """Declared sources plus any source a package was resolved from."""
        sources: dict[str, Source] = {}
        for spec in resolution:
            if spec.source is not None:
                sources.setdefault(spec.source.key, spec.source)
        for source in self.sources:
            sources.setdefault(source.key, source)
        return tuple(sources[key] for key in sorted(sources))
