"""Lock state model.

``LockState`` is the persisted outcome of a resolution: the dependencies as
declared, the resolved package versions, the sources and platforms they
were resolved against, and the tool version that wrote them. It is a pure
data holder with no I/O, safe to import from any layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from lockwise import __version__
from lockwise.core.dependency.catalog import Dependency, Source
from lockwise.core.dependency.platform import Platform
from lockwise.core.dependency.resolution_set import ResolutionSet
from lockwise.core.dependency.version import Version

# Top-level sections written by this version of the format.
KNOWN_SECTIONS = (
    "dependencies",
    "generated_by",
    "lockfile_version",
    "lockwise_version",
    "packages",
    "platforms",
    "sources",
)


@dataclass(frozen=True)
class LockState:
    """The persisted result of a resolution.

    Attributes:
        dependencies: Root dependencies as declared when the lock was made.
        resolution: The resolved package versions.
        sources: Sources the packages were resolved from.
        platforms: Target platforms the lock covers.
        tool_version: Version of lockwise that wrote the state.
        extra: Top-level sections this version does not understand, kept
            verbatim so a rewrite does not lose them.
    """

    dependencies: tuple[Dependency, ...] = ()
    resolution: ResolutionSet = field(default_factory=ResolutionSet)
    sources: tuple[Source, ...] = ()
    platforms: tuple[Platform, ...] = ()
    tool_version: str = __version__
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.dependencies and not len(self.resolution)

    def dependency(self, name: str) -> Dependency | None:
        """Return the declared root dependency called *name*, if any."""
        for dep in self.dependencies:
            if dep.name == name:
                return dep
        return None

    def locked_versions(self) -> dict[str, Version]:
        """Map every locked package name to its locked version."""
        return {name: self.resolution.version_of(name) for name in self.resolution.names}
