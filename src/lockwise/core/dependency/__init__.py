"""Dependency model and backjumping resolution.

This package holds the value types the resolver works on and the resolver
itself. All public names are re-exported here so callers can write
``from lockwise.core.dependency import Resolver``.

Model
-----
- **Version / Requirement**: ordered versions and conjunctive constraints.
- **Platform**: build targets; ``pure`` matches every target.
- **Source / Dependency / PackageVersion / VersionGroup**: the catalog
  entries an ``Index`` serves.
- **ResolutionSet**: the immutable result of a resolution.
- **VersionStrategy**: candidate ordering for previously locked names.
"""

from lockwise.core.dependency.version import (
    Requirement,
    Version,
)
from lockwise.core.dependency.platform import (
    PURE,
    Platform,
)
from lockwise.core.dependency.catalog import (
    Dependency,
    DependencyKind,
    Index,
    PackageVersion,
    Source,
    VersionGroup,
    group_versions,
)
from lockwise.core.dependency.resolution_set import ResolutionSet
from lockwise.core.dependency.strategy import (
    Level,
    VersionStrategy,
)
from lockwise.core.dependency.resolver import (
    Activation,
    DependencyRequest,
    Resolver,
    resolve,
    root_requests,
)

__all__ = [
    "Version",
    "Requirement",
    "Platform",
    "PURE",
    "Source",
    "Dependency",
    "DependencyKind",
    "PackageVersion",
    "VersionGroup",
    "group_versions",
    "Index",
    "ResolutionSet",
    "Level",
    "VersionStrategy",
    "DependencyRequest",
    "Activation",
    "Resolver",
    "resolve",
    "root_requests",
]
