"""YAML adapters for project manifests and package indexes.

Both documents are plain structured data; nothing here evaluates code or
touches the network.

Manifest (``lockwise.yaml``)::

    sources:
      - {kind: registry, location: "https://packages.example.com"}
      - {kind: path, location: vendor/tool, digest: 9f2c41}
    platforms: [pure, x86_64-linux]
    dependencies:
      rack: "~> 2.0"                 # shorthand
      tool:
        requirement: ">= 1.0"
        source: "path:vendor/tool"
        platforms: [x86_64-linux]

Index (``index.yaml``)::

    packages:
      - name: rack
        version: 2.0.3
        dependencies: {rack-test: ">= 0.6"}
      - name: tool
        version: 1.1.0
        platform: x86_64-linux
        source: "path:vendor/tool"

Versions and requirements must load as text: quote numbers such as
``"1.10"`` that YAML would otherwise read as floats.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from lockwise.core.dependency.catalog import (
    Dependency,
    DependencyKind,
    Index,
    PackageVersion,
    Source,
)
from lockwise.core.dependency.platform import PURE, Platform
from lockwise.core.dependency.version import Requirement, Version
from lockwise.exceptions import ConfigError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "lockwise.yaml"
INDEX_NAME = "index.yaml"


@dataclass(frozen=True)
class Manifest:
    """Declared inputs of a project."""

    dependencies: tuple[Dependency, ...] = ()
    sources: tuple[Source, ...] = ()
    platforms: tuple[Platform, ...] = (PURE,)

    def source(self, key: str) -> Source:
        for source in self.sources:
            if source.key == key:
                return source
        raise ConfigError(f"Unknown source {key!r}; declare it under 'sources'")


# --- File loading --------------------------------------------------------


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from *path*.

    Raises:
        ConfigError: If the file is unreadable, malformed, or not a mapping.
    """
    try:
        raw = path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw)
    except (OSError, yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return data


def load_manifest(path: Path) -> Manifest:
    return parse_manifest(load_yaml(path))


def load_index(path: Path, manifest: Manifest) -> Index:
    return parse_index(load_yaml(path), manifest)


# --- Parsing -------------------------------------------------------------


def _parse_platform(value: Any) -> Platform:
    if isinstance(value, dict):
        if "name" not in value:
            raise ConfigError(f"Platform entry needs a name: {value!r}")
        return Platform(str(value["name"]), frozenset(map(str, value.get("aliases", []))))
    return Platform.parse(None if value is None else str(value))


def _parse_source(value: Any) -> Source:
    if not isinstance(value, dict):
        raise ConfigError(f"Source entry must be a mapping: {value!r}")
    try:
        return Source(
            str(value.get("kind", "registry")),
            str(value["location"]),
            None if value.get("digest") is None else str(value["digest"]),
        )
    except KeyError as exc:
        raise ConfigError(f"Source entry needs a location: {value!r}") from exc
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def _quoted(value: Any, what: str) -> Any:
    """Reject YAML scalars that did not load as text.

    Unquoted numbers such as ``1.10`` load as floats and lose digits.
    """
    if value is not None and not isinstance(value, (str, list)):
        raise ConfigError(f"{what} must be a quoted string, got {value!r}")
    return value


def _parse_dependency(name: str, value: Any, manifest: Manifest | None) -> Dependency:
    """Parse one dependency from shorthand text or a mapping."""
    if value is None or isinstance(value, (str, list)):
        return Dependency.of(name, value)
    if not isinstance(value, dict):
        raise ConfigError(f"Invalid dependency {name!r}: {value!r}")
    try:
        kind = DependencyKind(value.get("kind", DependencyKind.RUNTIME.value))
    except ValueError as exc:
        raise ConfigError(f"Invalid kind for dependency {name!r}") from exc
    source = None
    if value.get("source") is not None:
        if manifest is None:
            raise ConfigError(f"Dependency {name!r} cannot pin a source here")
        source = manifest.source(str(value["source"]))
    groups = value.get("groups", ["default"])
    return Dependency(
        name=name,
        requirement=Requirement.parse(
            _quoted(value.get("requirement"), f"Requirement of {name!r}")
        ),
        kind=kind,
        platforms=tuple(_parse_platform(p) for p in value.get("platforms", [])),
        source=source,
        groups=tuple(str(g) for g in groups),
    )


def _parse_dependencies(value: Any, manifest: Manifest | None) -> tuple[Dependency, ...]:
    if value is None:
        return ()
    if isinstance(value, dict):
        return tuple(_parse_dependency(str(n), v, manifest) for n, v in value.items())
    if isinstance(value, list):
        deps = []
        for entry in value:
            if not isinstance(entry, dict) or "name" not in entry:
                raise ConfigError(f"Dependency entry needs a name: {entry!r}")
            deps.append(_parse_dependency(str(entry["name"]), entry, manifest))
        return tuple(deps)
    raise ConfigError(f"'dependencies' must be a mapping or a list, got {value!r}")


def parse_manifest(data: dict[str, Any]) -> Manifest:
    """Build a ``Manifest`` from a parsed YAML mapping.

    Raises:
        ConfigError: On structurally invalid input.
        ParseError: On malformed requirements.
    """
    sources = tuple(_parse_source(s) for s in data.get("sources") or [])
    platforms = tuple(_parse_platform(p) for p in data.get("platforms") or []) or (PURE,)
    partial = Manifest(sources=sources, platforms=platforms)
    dependencies = _parse_dependencies(data.get("dependencies"), partial)
    names = [d.name for d in dependencies]
    duplicated = sorted({n for n in names if names.count(n) > 1})
    if duplicated:
        raise ConfigError(f"Dependencies declared more than once: {', '.join(duplicated)}")
    return Manifest(dependencies=dependencies, sources=sources, platforms=platforms)


def parse_index(data: dict[str, Any], manifest: Manifest) -> Index:
    """Build an ``Index`` from a parsed YAML mapping.

    Packages without a ``source`` belong to the first declared source.
    Sources are merged in declaration order, so an earlier source wins
    when two offer the same name, version and platform.
    """
    packages = data.get("packages") or []
    if not isinstance(packages, list):
        raise ConfigError("'packages' must be a list")
    default_source = manifest.sources[0] if manifest.sources else None

    by_source: dict[str | None, list[PackageVersion]] = {}
    for entry in packages:
        if not isinstance(entry, dict) or "name" not in entry or "version" not in entry:
            raise ConfigError(f"Package entry needs a name and a version: {entry!r}")
        source = (
            manifest.source(str(entry["source"]))
            if entry.get("source") is not None
            else default_source
        )
        name = str(entry["name"])
        version = entry["version"]
        if not isinstance(version, str):
            raise ConfigError(f"Version of {name!r} must be a quoted string, got {version!r}")
        spec = PackageVersion(
            name=name,
            version=Version.parse(version),
            platform=_parse_platform(entry.get("platform")),
            source=source,
            dependencies=_parse_dependencies(entry.get("dependencies"), None),
        )
        by_source.setdefault(source.key if source else None, []).append(spec)

    order = [s.key for s in manifest.sources] + [None]
    index = Index.merge(by_source[key] for key in order if key in by_source)
    for winner, loser in index.shadowed:
        logger.debug("%s from %s shadows %s", winner.full_name, winner.source, loser.source)
    return index
