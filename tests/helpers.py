"""Shared factories for building indexes, requests and lock states in tests."""

from __future__ import annotations

from typing import Iterable

from lockwise.core.dependency import (
    PURE,
    Dependency,
    DependencyRequest,
    Index,
    PackageVersion,
    Platform,
    ResolutionSet,
    Source,
    Version,
    root_requests,
)
from lockwise.core.lockfile import LockState

REGISTRY = Source.registry("https://packages.example.com")


def make_package(
    name: str,
    version: str,
    deps: dict[str, str] | None = None,
    platform: str | None = None,
    source: Source | None = REGISTRY,
) -> PackageVersion:
    """Convenience factory for PackageVersion instances."""
    return PackageVersion(
        name=name,
        version=Version.parse(version),
        platform=Platform.parse(platform),
        source=source,
        dependencies=tuple(Dependency.of(n, r) for n, r in (deps or {}).items()),
    )


def make_index(*specs: PackageVersion) -> Index:
    return Index(specs)


def requests_for(
    deps: dict[str, str | None], platforms: Iterable[Platform] = (PURE,)
) -> list[DependencyRequest]:
    """Root requests for ``{name: requirement}`` on every platform."""
    return root_requests([Dependency.of(n, r) for n, r in deps.items()], platforms)


def versions(resolution: ResolutionSet) -> dict[str, str]:
    """Map each resolved name to its version text."""
    return {spec.name: str(spec.version) for spec in resolution}


def make_lock(
    deps: dict[str, str | None],
    specs: Iterable[PackageVersion],
    platforms: Iterable[Platform] = (PURE,),
    sources: Iterable[Source] = (REGISTRY,),
) -> LockState:
    """Build a previous lock state from declared deps and locked packages."""
    return LockState(
        dependencies=tuple(Dependency.of(n, r) for n, r in sorted(deps.items())),
        resolution=ResolutionSet(specs),
        sources=tuple(sources),
        platforms=tuple(platforms),
    )
