"""Resolution Set: the chosen, consistent set of concrete package versions.

A ``ResolutionSet`` is immutable. Every operation returns a new set, which
lets the reconciler keep the previous lock's set as a value while building
the next one, and lets tests compare sets with ``==``.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Iterable, Iterator

from lockwise.core.dependency.catalog import Dependency, PackageVersion
from lockwise.core.dependency.platform import Platform


def _sort_key(spec: PackageVersion) -> tuple:
    return (spec.name.lower(), spec.name, spec.platform.name, spec.version)


def _best_match(specs: Iterable[PackageVersion], platform: Platform) -> PackageVersion | None:
    """Pick the member built for *platform*, falling back to a compatible one."""
    fallback: PackageVersion | None = None
    for spec in specs:
        if spec.platform.name == platform.name:
            return spec
        if fallback is None and spec.platform.matches(platform):
            fallback = spec
    return fallback


class ResolutionSet:
    """An immutable collection of resolved package versions.

    Members are unique on ``(name, version, platform, source)`` and iterate
    in canonical order: case-insensitive name, then platform, then version.
    """

    def __init__(self, specs: Iterable[PackageVersion] = ()) -> None:
        unique: dict[tuple, PackageVersion] = {}
        for spec in specs:
            unique.setdefault(spec.set_key, spec)
        self._specs: tuple[PackageVersion, ...] = tuple(sorted(unique.values(), key=_sort_key))
        lookup: dict[str, list[PackageVersion]] = defaultdict(list)
        for spec in self._specs:
            lookup[spec.name].append(spec)
        self._lookup = {k: tuple(v) for k, v in lookup.items()}

    # -- Queries ------------------------------------------------------------

    def __iter__(self) -> Iterator[PackageVersion]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __getitem__(self, name: str) -> list[PackageVersion]:
        return list(self._lookup.get(name, ()))

    def __contains__(self, item: object) -> bool:
        if isinstance(item, PackageVersion):
            return any(s.set_key == item.set_key for s in self._lookup.get(item.name, ()))
        return item in self._lookup

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResolutionSet):
            return NotImplemented
        return [s.set_key for s in self._specs] == [s.set_key for s in other._specs]

    def __hash__(self) -> int:
        return hash(tuple(s.set_key for s in self._specs))

    def __repr__(self) -> str:
        return f"ResolutionSet([{', '.join(s.full_name for s in self._specs)}])"

    @property
    def names(self) -> list[str]:
        return sorted(self._lookup)

    def contains(self, name: str, platform: Platform) -> bool:
        """True if some member of *name* is usable on *platform*."""
        return _best_match(self._lookup.get(name, ()), platform) is not None

    def version_of(self, name: str):
        """Return the (first) resolved version of *name*, or None."""
        specs = self._lookup.get(name)
        return specs[0].version if specs else None

    def duplicates(self) -> list[tuple[str, str]]:
        """Return ``(name, platform)`` pairs holding more than one version."""
        seen: dict[tuple[str, str], set] = defaultdict(set)
        for spec in self._specs:
            seen[(spec.name, spec.platform.name)].add(spec.version)
        return sorted(key for key, versions in seen.items() if len(versions) > 1)

    # -- Set algebra --------------------------------------------------------

    def __sub__(self, other: "ResolutionSet") -> "ResolutionSet":
        keys = {s.set_key for s in other}
        return ResolutionSet(s for s in self._specs if s.set_key not in keys)

    def __or__(self, other: "ResolutionSet") -> "ResolutionSet":
        return ResolutionSet([*self._specs, *other])

    difference = __sub__
    union = __or__

    def merge(self, other: "ResolutionSet") -> "ResolutionSet":
        """Combine with *other*; any name present in *other* replaces ours."""
        replaced = set(other.names)
        kept = [s for s in self._specs if s.name not in replaced]
        return ResolutionSet([*kept, *other])

    def without(self, names: Iterable[str]) -> "ResolutionSet":
        dropped = set(names)
        return ResolutionSet(s for s in self._specs if s.name not in dropped)

    # -- Closure ------------------------------------------------------------

    def _walk(
        self,
        dependencies: Iterable[Dependency],
        platforms: Iterable[Platform] | None,
        skip: Iterable[str],
        missing: list[str] | None,
        check: bool,
    ) -> list[PackageVersion] | None:
        skipped = set(skip)
        targets = list(platforms) if platforms is not None else None
        queue: deque[tuple[Dependency, Platform | None]] = deque()
        for dep in dependencies:
            if targets is None:
                queue.append((dep, None))
            else:
                for platform in dep.target_platforms(targets):
                    queue.append((dep, platform))

        handled: set[tuple[str, str | None]] = set()
        found: list[PackageVersion] = []
        while queue:
            dep, platform = queue.popleft()
            key = (dep.name, platform.name if platform else None)
            if dep.name in skipped:
                continue
            # A checking walk validates every edge but expands each name once.
            if key in handled and not check:
                continue

            candidates = self._lookup.get(dep.name, ())
            if platform is None:
                chosen = list(candidates)
            else:
                best = _best_match(candidates, platform)
                chosen = [best] if best is not None else []

            if not chosen:
                if check:
                    return None
                if missing is not None and dep.name not in missing:
                    missing.append(dep.name)
                continue
            if check and not any(dep.requirement.satisfied_by(s.version) for s in chosen):
                return None
            if key in handled:
                continue
            handled.add(key)

            for spec in chosen:
                found.append(spec)
                edges = spec.runtime_dependencies() if platform is None else spec.dependencies_for(platform)
                for child in edges:
                    queue.append((child, platform))
        return found

    def for_requirements(
        self,
        dependencies: Iterable[Dependency],
        platforms: Iterable[Platform] | None = None,
        skip: Iterable[str] = (),
    ) -> "ResolutionSet":
        """Transitive closure of *dependencies* restricted to our members.

        Names in *skip* are neither included nor followed. With *platforms*
        the walk selects the best member per platform; without it every
        member of a reached name is kept.
        """
        found = self._walk(dependencies, platforms, skip, None, check=False)
        return ResolutionSet(found or [])

    def satisfies(
        self,
        dependencies: Iterable[Dependency],
        platforms: Iterable[Platform] | None = None,
    ) -> bool:
        """True if every transitive requirement is present and satisfied."""
        return self._walk(dependencies, platforms, (), None, check=True) is not None

    def materialize(
        self,
        requested: Iterable[Dependency],
        platforms: Iterable[Platform],
        missing: list[str] | None = None,
        groups: Iterable[str] = (),
    ) -> "ResolutionSet":
        """Select the concrete members needed for *requested* on *platforms*.

        Only requested dependencies in one of *groups* are followed; an empty
        *groups* selects all of them. Names that cannot be matched are
        appended to *missing* instead of raising, leaving the caller to
        decide how to report them.
        """
        wanted = tuple(groups)
        roots = [d for d in requested if d.in_groups(wanted)]
        found = self._walk(roots, platforms, (), missing, check=False)
        return ResolutionSet(found or [])
