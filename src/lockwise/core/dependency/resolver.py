"""Backjumping dependency resolver.

Turns a list of root dependency requests, an ``Index``, an optional
baseline ``ResolutionSet`` and a ``VersionStrategy`` into a finalized
``ResolutionSet``, or raises a structured ``ResolutionError``.

Search model
------------
The resolver repeatedly pops the most constrained pending request from a
queue. A request for an already activated name is either merged (its
version satisfies the request) or recorded as a conflict. A conflict names
its culprits: the decisions that put the request on the queue and the
decision that activated the clashing version. A request for a new name
opens a *decision point*: a choice-point frame holding the remaining
candidates plus snapshots of the activation map and queue taken right
before the decision.

Control flow never relies on exceptions or recursion. A conflict scans the
choice-point stack for the newest frame labeled with a culprit, truncates
the stack to it, charges it with the remaining culprits and resumes with
its next candidate. A frame that runs out of candidates passes its charged
culprits, plus the decisions behind its own request, on in the same way.
Nothing decided after the newest culprit can cause the clash, so no
solution is skipped. When the queue empties the search stops at once,
whatever depth it reached.

Thread safety: a ``Resolver`` owns all of its search state and mutates
nothing it was given, so independent resolutions may run concurrently as
long as the ``Index`` is not being modified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from lockwise.core.dependency.catalog import (
    Dependency,
    Index,
    PackageVersion,
    VersionGroup,
    group_versions,
)
from lockwise.core.dependency.platform import PURE, Platform
from lockwise.core.dependency.resolution_set import ResolutionSet
from lockwise.core.dependency.strategy import VersionStrategy
from lockwise.core.dependency.version import Requirement
from lockwise.exceptions import (
    Conflict,
    CyclicDependency,
    NotFound,
    ResolutionError,
    VersionConflict,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Requests and activations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DependencyRequest:
    """A dependency to satisfy for one target platform.

    Attributes:
        dependency: What is required.
        platform: The target platform the requirement applies to.
        required_by: Provenance chain, oldest ancestor first. Empty for
            root requests coming from the manifest.
    """

    dependency: Dependency
    platform: Platform = PURE
    required_by: tuple[Dependency, ...] = ()

    @classmethod
    def root(cls, dependency: Dependency, platform: Platform = PURE) -> "DependencyRequest":
        return cls(dependency, platform, ())

    @property
    def name(self) -> str:
        return self.dependency.name

    @property
    def requirement(self) -> Requirement:
        return self.dependency.requirement

    @property
    def is_root(self) -> bool:
        return not self.required_by

    @property
    def provenance(self) -> tuple[Dependency, ...]:
        """The chain handed to requests this one pulls in."""
        return self.required_by + (self.dependency,)

    def __str__(self) -> str:
        return str(self.dependency)


def root_requests(
    dependencies: Iterable[Dependency], platforms: Iterable[Platform]
) -> list[DependencyRequest]:
    """Expand manifest dependencies into one request per applicable platform."""
    targets = list(platforms) or [PURE]
    requests: list[DependencyRequest] = []
    for dep in dependencies:
        for platform in dep.target_platforms(targets):
            requests.append(DependencyRequest.root(dep, platform))
    return requests


@dataclass(frozen=True)
class Activation:
    """A version group chosen for a name, and the platforms it serves.

    ``required_by`` is the provenance of the request that activated the
    group, ending with that request's own dependency.
    """

    group: VersionGroup
    platforms: tuple[Platform, ...]
    required_by: tuple[Dependency, ...]

    @property
    def name(self) -> str:
        return self.group.name

    @property
    def version(self):
        return self.group.version

    def serves(self, platform: Platform) -> bool:
        return any(p.name == platform.name for p in self.platforms)

    @property
    def activated_by(self) -> Dependency | None:
        """The parent that asked for this group, or None for a root."""
        return self.required_by[-2] if len(self.required_by) > 1 else None

    def with_platform(self, platform: Platform) -> "Activation":
        return Activation(self.group, self.platforms + (platform,), self.required_by)

    def to_specs(self) -> list[PackageVersion]:
        """One package version per distinct build actually activated."""
        specs: dict[str, PackageVersion] = {}
        for platform in self.platforms:
            member = self.group.for_platform(platform)
            if member is not None:
                specs.setdefault(member.platform.name, member)
        return list(specs.values())


@dataclass
class _ChoicePoint:
    """One decision on the explicit backjump stack."""

    request: DependencyRequest
    candidates: list[VersionGroup]
    queue: tuple[DependencyRequest, ...]
    activated: dict[str, Activation]
    position: int = 0
    conflicts: set[str] = field(default_factory=set)

    @property
    def label(self) -> str:
        return self.request.name

    def culprits(self) -> set[str]:
        """Decisions to revisit once every candidate here has failed."""
        names = self.conflicts | {d.name for d in self.request.required_by}
        names.discard(self.label)
        return names


@dataclass(frozen=True)
class _SearchResult:
    groups: list[VersionGroup]
    found_any: bool
    locked: PackageVersion | None = None


_State = tuple[dict[str, Activation], list[DependencyRequest]]


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class Resolver:
    """Conflict-directed backjumping resolver.

    Args:
        index: Read-only catalog of candidate versions.
        source_overrides: Per-name index to search instead of *index*,
            used for dependencies pinned to an explicit source.
        baseline: Previously resolved versions to keep. A name present in
            the baseline is pinned to the baseline version.
        strategy: Candidate ordering for locked names.
        floors: Extra requirements applied when searching a name, used to
            forbid downgrades below a previously locked version.
    """

    def __init__(
        self,
        index: Index,
        source_overrides: Mapping[str, Index] | None = None,
        baseline: ResolutionSet | None = None,
        strategy: VersionStrategy | None = None,
        floors: Mapping[str, Requirement] | None = None,
    ) -> None:
        self._index = index
        self._source_overrides = dict(source_overrides or {})
        self._baseline = baseline or ResolutionSet()
        self._strategy = strategy or VersionStrategy.default()
        self._floors = dict(floors or {})
        self._errors: dict[str, Conflict] = {}
        self._last_conflict: Conflict | None = None
        self._stack: list[_ChoicePoint] = []
        self._search_cache: dict[tuple, _SearchResult] = {}
        self.iterations = 0

    @property
    def errors(self) -> dict[str, Conflict]:
        """Conflicts recorded during the last resolution, by package name."""
        return dict(self._errors)

    def resolve(self, requests: Iterable[DependencyRequest]) -> ResolutionSet:
        """Resolve *requests* into a consistent set of package versions.

        Raises:
            NotFound: A root request has no candidate at all.
            CyclicDependency: A package requires an incompatible version
                of itself through its own dependencies.
            VersionConflict: Candidates exist but no combination satisfies
                every requirement.
        """
        self._errors = {}
        self._last_conflict = None
        self._stack = []
        self.iterations = 0

        activated: dict[str, Activation] = {}
        queue: list[DependencyRequest] = list(requests)

        while True:
            if not queue:
                return self._finalize(activated)

            self.iterations += 1
            queue = self._sort(queue, activated)
            current = queue.pop(0)
            logger.debug("Attempting %s for %s", current, current.platform)

            existing = activated.get(current.name)
            if existing is not None:
                if self._satisfies(existing, current):
                    self._errors.pop(current.name, None)
                    if not existing.serves(current.platform):
                        activated[current.name] = existing.with_platform(current.platform)
                        queue.extend(
                            DependencyRequest(dep, current.platform, current.provenance)
                            for dep in existing.group.dependencies_for(current.platform)
                        )
                    continue
                activated, queue = self._conflict(existing, current)
            else:
                activated, queue = self._decide(current, queue, activated)

    # -- Step helpers -------------------------------------------------------

    def _satisfies(self, existing: Activation, request: DependencyRequest) -> bool:
        if not request.requirement.satisfied_by(existing.version):
            return False
        pinned = request.dependency.source
        if pinned is not None and not pinned.equivalent(existing.group.source):
            return False
        return existing.group.supports(request.platform)

    def _conflict(self, existing: Activation, current: DependencyRequest) -> _State:
        """Record a clash with an activated version and jump back."""
        logger.debug("Conflict: %s (%s) vs %s", existing.name, existing.version, current)
        culprits = {d.name for d in current.required_by}
        culprits.add(existing.name)
        return self._fail(Conflict(current.name, existing, current), current, culprits)

    def _fail(
        self,
        conflict: Conflict,
        current: DependencyRequest,
        culprits: set[str] | None = None,
    ) -> _State:
        """Record *conflict* and back up to the newest decision that caused it.

        Without explicit *culprits* the request could not be met at all, so
        only the decisions that put it on the queue are to blame. A root
        request without culprits can never be met.
        """
        self._errors[current.name] = conflict
        self._last_conflict = conflict
        if culprits is None:
            culprits = {d.name for d in current.required_by}
        if not self._backjump(culprits):
            raise self._version_conflict()
        return self._advance()

    def _backjump(self, culprits: set[str]) -> bool:
        """Truncate the stack to the newest frame labeled with a culprit.

        The other culprits are charged to that frame. Returns False when no
        culprit is on the stack.
        """
        for i in range(len(self._stack) - 1, -1, -1):
            frame = self._stack[i]
            if frame.label in culprits:
                logger.debug("Jumping to: %s", frame.label)
                del self._stack[i + 1:]
                frame.conflicts |= culprits - {frame.label}
                return True
        return False

    def _decide(
        self,
        current: DependencyRequest,
        queue: list[DependencyRequest],
        activated: dict[str, Activation],
    ) -> _State:
        """Open a decision point for a name that is not yet activated."""
        result = self._search(current)

        if result.locked is not None:
            return self._fail(Conflict(current.name, result.locked, current), current)

        if not result.groups:
            if current.is_root and not result.found_any:
                raise self._not_found(current)
            return self._fail(Conflict(current.name, None, current), current)

        self._stack.append(
            _ChoicePoint(
                request=current,
                candidates=result.groups,
                queue=tuple(queue),
                activated=dict(activated),
            )
        )
        return self._advance()

    def _advance(self) -> _State:
        """Try the next candidate of the newest decision point.

        An exhausted frame is popped and its culprits are passed on to the
        newest decision among them.
        """
        while self._stack:
            frame = self._stack[-1]
            if frame.position < len(frame.candidates):
                group = frame.candidates[frame.position]
                frame.position += 1
                return self._activate(frame, group)

            self._stack.pop()
            if not self._backjump(frame.culprits()):
                break
        raise self._version_conflict()

    def _activate(self, frame: _ChoicePoint, group: VersionGroup) -> _State:
        request = frame.request
        logger.debug("Activating: %s (%s)", group.name, group.version)
        activated = dict(frame.activated)
        activated[request.name] = Activation(group, (request.platform,), request.provenance)
        queue = list(frame.queue)
        queue.extend(
            DependencyRequest(dep, request.platform, request.provenance)
            for dep in group.dependencies_for(request.platform)
        )
        return activated, queue

    def _sort(
        self, queue: list[DependencyRequest], activated: dict[str, Activation]
    ) -> list[DependencyRequest]:
        # Easiest first: activated, pre-release, previously conflicting,
        # then fewest candidates.
        def key(request: DependencyRequest) -> tuple[int, int, int, int]:
            is_active = request.name in activated
            return (
                0 if is_active else 1,
                0 if request.requirement.is_prerelease else 1,
                0 if request.name in self._errors else 1,
                0 if is_active else len(self._search(request).groups),
            )

        return sorted(queue, key=key)

    # -- Candidate search ---------------------------------------------------

    def _search(self, request: DependencyRequest) -> _SearchResult:
        dep = request.dependency
        cache_key = (dep.name, dep.requirement, request.platform.name, dep.source)
        cached = self._search_cache.get(cache_key)
        if cached is None:
            cached = self._search_uncached(request)
            self._search_cache[cache_key] = cached
        return cached

    def _search_uncached(self, request: DependencyRequest) -> _SearchResult:
        dep = request.dependency
        index = self._source_overrides.get(dep.name, self._index)

        pinned = self._baseline[dep.name]
        if pinned:
            version = pinned[0].version
            specs = list(pinned) + [s for s in index.specs_for(dep.name) if s.version == version]
            groups = [g for g in group_versions(specs) if g.supports(request.platform)]
            if not dep.requirement.satisfied_by(version) or (
                dep.source is not None and not dep.source.equivalent(pinned[0].source)
            ):
                return _SearchResult([], True, locked=pinned[0])
            return _SearchResult(groups, bool(groups))

        groups = index.search(dep.name, dep.requirement, request.platform)
        found_any = bool(groups)
        if dep.source is not None and dep.name not in self._source_overrides:
            groups = [g for g in groups if dep.source.equivalent(g.source)]
            found_any = bool(groups)
        floor = self._floors.get(dep.name)
        if floor is not None:
            groups = [g for g in groups if floor.satisfied_by(g.version)]
        groups = self._strategy.sort(dep.name, groups)
        return _SearchResult(groups, found_any)

    # -- Results and failures -----------------------------------------------

    def _finalize(self, activated: dict[str, Activation]) -> ResolutionSet:
        specs: list[PackageVersion] = []
        for name in sorted(activated):
            specs.extend(activated[name].to_specs())
        logger.debug("Resolved %d packages in %d iterations", len(specs), self.iterations)
        return ResolutionSet(specs)

    def _not_found(self, request: DependencyRequest) -> NotFound:
        dep = request.dependency
        index = self._source_overrides.get(dep.name, self._index)
        available = [str(v) for v in index.versions_of(dep.name)]
        return NotFound(request, available, dep.source)

    def _version_conflict(self) -> ResolutionError:
        conflicts = sorted(self._errors.values(), key=lambda c: c.name)
        cycle = _cycle_in(self._last_conflict)
        if cycle is not None:
            return CyclicDependency(cycle, conflicts)
        return VersionConflict(conflicts)


def _cycle_in(conflict: Conflict | None) -> tuple[str, ...] | None:
    """The shortest provenance chain that leads *conflict* back to its own package."""
    if conflict is None or conflict.existing is None:
        return None
    chain = [d.name for d in conflict.requirement.required_by]
    if conflict.name not in chain:
        return None
    start = len(chain) - 1 - chain[::-1].index(conflict.name)
    return tuple(chain[start:])

def resolve(
    requests: Iterable[DependencyRequest],
    index: Index,
    source_overrides: Mapping[str, Index] | None = None,
    baseline: ResolutionSet | None = None,
    strategy: VersionStrategy | None = None,
    floors: Mapping[str, Requirement] | None = None,
) -> ResolutionSet:
    """Resolve *requests*, retrying once without ``strict`` if it cannot be met.

    See ``Resolver`` for argument details.
    """
    requests = list(requests)
    strategy = strategy or VersionStrategy.default()
    resolver = Resolver(index, source_overrides, baseline, strategy, floors)
    try:
        return resolver.resolve(requests)
    except (VersionConflict, CyclicDependency):
        if not strategy.strict:
            raise
        logger.info(
            "No resolution within the %s bound; retrying without strict",
            strategy.level.value if strategy.level else "default",
        )
    relaxed = Resolver(index, source_overrides, baseline, strategy.relaxed(), floors)
    return relaxed.resolve(requests)
