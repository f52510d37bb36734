"""Catalog model: sources, dependencies, package versions and the Index.

The Index is the searchable universe of candidate versions handed to the
resolver. It is populated by an external provider and treated as a
read-only snapshot for the duration of a resolution.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator

from lockwise.core.dependency.platform import PURE, Platform
from lockwise.core.dependency.version import Requirement, Version

# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------

SOURCE_KINDS = ("registry", "path", "git")


@dataclass(frozen=True)
class Source:
    """Where package versions come from.

    ``path`` and ``git`` sources are content-addressed: their identity can
    carry a ``digest`` (a revision or content hash) that changes whenever
    the underlying content changes, independent of any version bump.

    Attributes:
        kind: One of "registry", "path", "git".
        location: URL or filesystem path.
        digest: Content digest for content-addressed sources, or None.
    """

    kind: str
    location: str
    digest: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in SOURCE_KINDS:
            raise ValueError(f"Unknown source kind: {self.kind!r}")

    @classmethod
    def registry(cls, location: str) -> "Source":
        return cls("registry", location)

    @property
    def is_local(self) -> bool:
        return self.kind in ("path", "git")

    @property
    def key(self) -> str:
        """Stable identifier used in lockfiles (digest excluded)."""
        return f"{self.kind}:{self.location}"

    def equivalent(self, other: "Source | None") -> bool:
        """True if *other* denotes the same content as this source."""
        if other is None:
            return False
        if (self.kind, self.location) != (other.kind, other.location):
            return False
        if self.is_local and self.digest and other.digest:
            return self.digest == other.digest
        return True

    def __str__(self) -> str:
        if self.digest:
            return f"{self.key}@{self.digest}"
        return self.key


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


class DependencyKind(str, Enum):
    RUNTIME = "runtime"
    DEVELOPMENT = "development"


@dataclass(frozen=True)
class Dependency:
    """A declared need for a package.

    Used both for root (manifest) dependencies and for the dependency
    lists of package versions.

    Attributes:
        name: Required package name.
        requirement: Version requirement the package must satisfy.
        kind: Runtime or development; development entries are not resolved.
        platforms: Target platforms the dependency applies to. Empty means
            every platform.
        source: Explicit source pin, or None.
        groups: Manifest groups the dependency belongs to.
    """

    name: str
    requirement: Requirement = field(default_factory=Requirement.default)
    kind: DependencyKind = DependencyKind.RUNTIME
    platforms: tuple[Platform, ...] = ()
    source: Source | None = None
    groups: tuple[str, ...] = ("default",)

    @classmethod
    def of(cls, name: str, requirement: str | Requirement | None = None, **kwargs) -> "Dependency":
        """Build a dependency from requirement text."""
        return cls(name=name, requirement=Requirement.parse(requirement), **kwargs)

    @property
    def is_runtime(self) -> bool:
        return self.kind is DependencyKind.RUNTIME

    def in_groups(self, groups: Iterable[str]) -> bool:
        """True when *groups* is empty or shares a group with this dependency."""
        wanted = set(groups)
        return not wanted or not wanted.isdisjoint(self.groups)

    def applies_to(self, platform: Platform) -> bool:
        if not self.platforms:
            return True
        return any(p.name == platform.name for p in self.platforms)

    def target_platforms(self, platforms: Iterable[Platform]) -> list[Platform]:
        """Return the subset of *platforms* this dependency applies to."""
        return [p for p in platforms if self.applies_to(p)]

    def __str__(self) -> str:
        return f"{self.name} ({self.requirement})"


# ---------------------------------------------------------------------------
# PackageVersion and VersionGroup
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PackageVersion:
    """One concrete, platform-specific build of a package version."""

    name: str
    version: Version
    platform: Platform = PURE
    source: Source | None = None
    dependencies: tuple[Dependency, ...] = ()

    @property
    def full_name(self) -> str:
        if self.platform.is_generic:
            return f"{self.name}-{self.version}"
        return f"{self.name}-{self.version}-{self.platform}"

    @property
    def set_key(self) -> tuple:
        return (self.name, self.version, self.platform.name, self.source)

    def runtime_dependencies(self) -> list[Dependency]:
        return [d for d in self.dependencies if d.is_runtime]

    def dependencies_for(self, platform: Platform) -> list[Dependency]:
        """Runtime dependencies that apply when targeting *platform*."""
        return [d for d in self.dependencies if d.is_runtime and d.applies_to(platform)]

    def satisfies(self, dependency: Dependency) -> bool:
        """True if this version meets *dependency* (name, requirement, source)."""
        if self.name != dependency.name:
            return False
        if not dependency.requirement.satisfied_by(self.version):
            return False
        if dependency.source is not None and not dependency.source.equivalent(self.source):
            return False
        return True

    def __str__(self) -> str:
        return f"{self.name} ({self.version})"


class VersionGroup:
    """All builds of one package at one version, across platforms.

    Activating a version activates the group; dependency edges and the
    final output stay per platform.
    """

    def __init__(self, members: Iterable[PackageVersion]) -> None:
        self._members: tuple[PackageVersion, ...] = tuple(members)
        if not self._members:
            raise ValueError("VersionGroup requires at least one member")
        first = self._members[0]
        for member in self._members:
            if member.name != first.name or member.version != first.version:
                raise ValueError(
                    f"VersionGroup members must share name and version: "
                    f"{first.full_name} vs {member.full_name}"
                )

    @property
    def name(self) -> str:
        return self._members[0].name

    @property
    def version(self) -> Version:
        return self._members[0].version

    @property
    def source(self) -> Source | None:
        return self._members[0].source

    @property
    def members(self) -> tuple[PackageVersion, ...]:
        return self._members

    def for_platform(self, platform: Platform) -> PackageVersion | None:
        """Return the best member for *platform*: exact build, alias, then generic."""
        generic: PackageVersion | None = None
        alias: PackageVersion | None = None
        for member in self._members:
            if member.platform.name == platform.name:
                return member
            if member.platform.is_generic:
                generic = generic or member
            elif member.platform.matches(platform):
                alias = alias or member
        return alias or generic

    def supports(self, platform: Platform) -> bool:
        return self.for_platform(platform) is not None

    def dependencies_for(self, platform: Platform) -> list[Dependency]:
        member = self.for_platform(platform)
        return member.dependencies_for(platform) if member else []

    def __iter__(self) -> Iterator[PackageVersion]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionGroup):
            return NotImplemented
        return self._members == other._members

    def __hash__(self) -> int:
        return hash(self._members)

    def __repr__(self) -> str:
        plats = ", ".join(str(m.platform) for m in self._members)
        return f"VersionGroup({self.name} {self.version} [{plats}])"


def group_versions(specs: Iterable[PackageVersion]) -> list[VersionGroup]:
    """Group *specs* by version, highest version first.

    Member order inside each group follows input order.
    """
    by_version: dict[Version, list[PackageVersion]] = {}
    for spec in specs:
        by_version.setdefault(spec.version, []).append(spec)
    ordered = sorted(by_version, reverse=True)
    return [VersionGroup(by_version[v]) for v in ordered]


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------


class Index:
    """Read-only catalog mapping package names to available versions.

    Entries are unique on ``(name, version, platform)``; when two sources
    offer the same entry the first one added wins and the loser is kept in
    ``shadowed`` for diagnostics.

    Thread safety: safe for concurrent reads once fully populated. Adding
    entries while a resolver is reading is not supported.
    """

    def __init__(self, specs: Iterable[PackageVersion] = ()) -> None:
        self._specs: dict[str, list[PackageVersion]] = defaultdict(list)
        self._keys: dict[tuple, PackageVersion] = {}
        self._sources: list[Source] = []
        self.shadowed: list[tuple[PackageVersion, PackageVersion]] = []
        for spec in specs:
            self.add(spec)

    @classmethod
    def merge(cls, sources: Iterable[Iterable[PackageVersion]]) -> "Index":
        """Build an index from several sources in precedence order.

        Args:
            sources: Ordered collections of package versions (an ``Index``
                works too); earlier sources win on collisions.
        """
        index = cls()
        for specs in sources:
            index.add_source(specs)
        return index

    def add_source(self, specs: Iterable[PackageVersion]) -> None:
        for spec in specs:
            self.add(spec)

    def add(self, spec: PackageVersion) -> bool:
        """Add one package version. Returns False if it was shadowed."""
        key = (spec.name, spec.version, spec.platform.name)
        winner = self._keys.get(key)
        if winner is not None:
            if winner != spec:
                self.shadowed.append((winner, spec))
            return False
        self._keys[key] = spec
        self._specs[spec.name].append(spec)
        if spec.source is not None and spec.source not in self._sources:
            self._sources.append(spec.source)
        return True

    @property
    def names(self) -> list[str]:
        return sorted(name for name, specs in self._specs.items() if specs)

    @property
    def sources(self) -> list[Source]:
        return list(self._sources)

    def specs_for(self, name: str) -> list[PackageVersion]:
        return list(self._specs.get(name, ()))

    def versions_of(self, name: str) -> list[Version]:
        """All distinct versions of *name*, ascending."""
        return sorted({s.version for s in self._specs.get(name, ())})

    def for_source(self, source: Source) -> "Index":
        """Return a sub-index holding only entries from *source*."""
        return Index(
            s for specs in self._specs.values() for s in specs
            if s.source is not None and s.source.kind == source.kind
            and s.source.location == source.location
        )

    def search(
        self,
        name: str,
        requirement: Requirement | None = None,
        platform: Platform | None = None,
    ) -> list[VersionGroup]:
        """Find version groups of *name* matching *requirement*.

        Pre-release versions are only considered when the requirement
        itself names a pre-release.

        Returns:
            Groups in descending version order, restricted to groups with at
            least one member usable on *platform* (when given).
        """
        requirement = requirement or Requirement.default()
        allow_pre = requirement.is_prerelease
        matching = [
            s for s in self._specs.get(name, ())
            if (allow_pre or not s.version.is_prerelease)
            and requirement.satisfied_by(s.version)
        ]
        groups = group_versions(matching)
        if platform is not None:
            groups = [g for g in groups if g.supports(platform)]
        return groups

    def __iter__(self) -> Iterator[PackageVersion]:
        for name in sorted(self._specs):
            yield from self._specs[name]

    def __contains__(self, name: object) -> bool:
        return bool(self._specs.get(name))  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._keys)
