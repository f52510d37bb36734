"""Version-selection strategy for locked packages.

The strategy is consulted whenever the resolver enumerates candidates for
a name that was present in the previous lock. It never adds candidates; it
only reorders them and, with ``strict``, drops the ones outside the level
bound.

Level bound
-----------
For a locked version ``L`` and a candidate ``C``:

- ``major``: ``C >= L``.
- ``minor``: ``C >= L`` and ``C`` shares ``L``'s first segment.
- ``patch``: ``C >= L`` and ``C`` shares ``L``'s first two segments.

Ordering for a locked name is: in-bound candidates (highest first, or
lowest first with ``minimal``), with ``L`` itself moved last when the name
is being updated, followed by the out-of-bound candidates (highest first)
unless ``strict`` is set.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Mapping

from lockwise.core.dependency.catalog import VersionGroup
from lockwise.core.dependency.version import Version


class Level(str, Enum):
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def fixed_segments(self) -> int:
        """How many leading segments must equal the locked version."""
        return {Level.MAJOR: 0, Level.MINOR: 1, Level.PATCH: 2}[self]


@dataclass(frozen=True)
class VersionStrategy:
    """Closed set of selection strategies: ``default`` or ``leveled``.

    Attributes:
        level: None for the default strategy (plain descending order).
        strict: Exclude out-of-bound candidates instead of demoting them.
        minimal: Prefer the lowest in-bound version instead of the highest.
        locked: Previously locked version per package name.
        updating: Names the caller asked to update; None means every name.
            An updated name's locked version is tried last.
        bypass: Names that ignore the strategy entirely (for example those
            whose source changed).
    """

    level: Level | None = None
    strict: bool = False
    minimal: bool = False
    locked: Mapping[str, Version] = field(default_factory=dict)
    updating: frozenset[str] | None = frozenset()
    bypass: frozenset[str] = frozenset()

    @classmethod
    def default(cls) -> "VersionStrategy":
        return cls()

    @classmethod
    def leveled(
        cls,
        level: Level | str,
        strict: bool = False,
        minimal: bool = False,
        locked: Mapping[str, Version] | None = None,
        updating: Iterable[str] | None = (),
        bypass: Iterable[str] = (),
    ) -> "VersionStrategy":
        return cls(
            level=Level(level),
            strict=strict,
            minimal=minimal,
            locked=dict(locked or {}),
            updating=None if updating is None else frozenset(updating),
            bypass=frozenset(bypass),
        )

    @property
    def is_default(self) -> bool:
        return self.level is None

    def relaxed(self) -> "VersionStrategy":
        """The same strategy without ``strict``."""
        return replace(self, strict=False)

    def describe(self) -> str:
        if self.level is None:
            return "default"
        mods = [m for m, on in (("strict", self.strict), ("minimal", self.minimal)) if on]
        return "+".join([self.level.value, *mods])

    def applies_to(self, name: str) -> bool:
        return self.level is not None and name in self.locked and name not in self.bypass

    def is_updating(self, name: str) -> bool:
        return self.updating is None or name in self.updating

    def in_bound(self, name: str, version: Version) -> bool:
        """True if *version* stays within the level bound of *name*'s lock."""
        if not self.applies_to(name):
            return True
        assert self.level is not None
        locked = self.locked[name]
        if version < locked:
            return False
        return all(
            version.segment(i) == locked.segment(i)
            for i in range(self.level.fixed_segments)
        )

    def sort(self, name: str, groups: list[VersionGroup]) -> list[VersionGroup]:
        """Order candidate *groups* (given highest first) for *name*."""
        if not self.applies_to(name):
            return list(groups)

        inside = [g for g in groups if self.in_bound(name, g.version)]
        outside = [g for g in groups if not self.in_bound(name, g.version)]
        if self.minimal:
            inside.reverse()
        if self.is_updating(name):
            locked = self.locked[name]
            current = [g for g in inside if g.version == locked]
            inside = [g for g in inside if g.version != locked] + current
        if self.strict:
            return inside
        return inside + outside
