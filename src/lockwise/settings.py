"""Reconciliation settings.

Settings come from an optional YAML file (``lockwise.config.yaml`` or a
path given on the command line) and are then overridden by CLI options.
Example file::

    frozen: false
    level: patch
    strict: true
    minimal: false
    only_move_forward: true
    lockfile: lockwise.lock
    groups: [default, test]
    unlock:
      names: [foo, bar]
      sources: ["git:https://example.com/repo.git"]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from lockwise.core.dependency.strategy import Level, VersionStrategy
from lockwise.core.dependency.version import Version
from lockwise.core.lockfile import LOCKFILE_NAME
from lockwise.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "lockwise.config.yaml"

_BOOL_KEYS = ("frozen", "strict", "minimal", "only_move_forward")
_KNOWN_KEYS = frozenset(_BOOL_KEYS + ("level", "lockfile", "groups", "unlock"))


@dataclass(frozen=True)
class UnlockRequest:
    """Which locked packages may change.

    Attributes:
        all: Discard the whole previous lock.
        names: Package names to unlock.
        sources: Source keys (``kind:location``) whose packages to unlock.
    """

    all: bool = False
    names: frozenset[str] = frozenset()
    sources: frozenset[str] = frozenset()

    @classmethod
    def everything(cls) -> "UnlockRequest":
        return cls(all=True)

    @classmethod
    def of(cls, names: Iterable[str] = (), sources: Iterable[str] = ()) -> "UnlockRequest":
        return cls(names=frozenset(names), sources=frozenset(sources))

    @property
    def is_empty(self) -> bool:
        return not self.all and not self.names and not self.sources


@dataclass(frozen=True)
class Settings:
    """Inputs that steer a reconciliation.

    Attributes:
        frozen: Refuse to re-resolve; any detected change is an error.
        unlock: Packages the user asked to update.
        level: Conservative update level, or None for plain newest-first.
        strict: Never leave the level bound (retried without it on failure).
        minimal: Prefer the lowest in-bound version.
        only_move_forward: Never select a version below the locked one.
        lockfile: Lockfile name, relative to the project directory.
        groups: Manifest groups whose packages must be present; empty means
            every group. Resolution always covers every group.
    """

    frozen: bool = False
    unlock: UnlockRequest = field(default_factory=UnlockRequest)
    level: Level | None = None
    strict: bool = False
    minimal: bool = False
    only_move_forward: bool = False
    lockfile: str = LOCKFILE_NAME
    groups: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.frozen and not self.unlock.is_empty:
            raise ConfigError("Cannot unlock packages while the lockfile is frozen")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "Settings":
        """Build settings from a parsed YAML mapping.

        Raises:
            ConfigError: On unknown keys, wrong value types, or contradictory
                options.
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError(f"Settings must be a mapping, got {type(data).__name__}")

        unknown = sorted(set(data) - _KNOWN_KEYS)
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(unknown)}")

        values: dict[str, Any] = {}
        for key in _BOOL_KEYS:
            if key in data:
                if not isinstance(data[key], bool):
                    raise ConfigError(f"Setting {key!r} must be true or false")
                values[key] = data[key]

        if data.get("level") is not None:
            values["level"] = _parse_level(data["level"])
        if "lockfile" in data:
            if not isinstance(data["lockfile"], str) or not data["lockfile"]:
                raise ConfigError("Setting 'lockfile' must be a non-empty string")
            values["lockfile"] = data["lockfile"]
        if "groups" in data:
            groups = data["groups"]
            if not isinstance(groups, list) or not all(isinstance(g, str) for g in groups):
                raise ConfigError("Setting 'groups' must be a list of group names")
            values["groups"] = tuple(groups)
        if "unlock" in data:
            values["unlock"] = _parse_unlock(data["unlock"])
        return cls(**values)

    def merged(self, **overrides: Any) -> "Settings":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "groups" in changes:
            changes["groups"] = tuple(changes["groups"])
        if "level" in changes:
            changes["level"] = _parse_level(changes["level"])
        return replace(self, **changes)

    def strategy(
        self,
        locked: Mapping[str, Version],
        updating: Iterable[str] | None = (),
        bypass: Iterable[str] = (),
    ) -> VersionStrategy:
        """Build the version-selection strategy these settings describe.

        ``strict`` or ``minimal`` without a level imply the ``major`` level.
        """
        level = self.level
        if level is None and (self.strict or self.minimal):
            level = Level.MAJOR
        if level is None:
            return VersionStrategy.default()
        return VersionStrategy.leveled(
            level,
            strict=self.strict,
            minimal=self.minimal,
            locked=locked,
            updating=updating,
            bypass=bypass,
        )


def _parse_level(value: Any) -> Level:
    if isinstance(value, Level):
        return value
    try:
        return Level(str(value).lower())
    except ValueError as exc:
        choices = ", ".join(level.value for level in Level)
        raise ConfigError(f"Invalid level {value!r} (expected one of: {choices})") from exc


def _parse_unlock(value: Any) -> UnlockRequest:
    if value is True or value == "all":
        return UnlockRequest.everything()
    if value in (None, False):
        return UnlockRequest()
    if isinstance(value, list):
        return UnlockRequest.of(names=[str(v) for v in value])
    if isinstance(value, Mapping):
        names = value.get("names", [])
        sources = value.get("sources", [])
        if not isinstance(names, list) or not isinstance(sources, list):
            raise ConfigError("'unlock.names' and 'unlock.sources' must be lists")
        if value.get("all", False):
            return UnlockRequest.everything()
        return UnlockRequest.of(names=map(str, names), sources=map(str, sources))
    raise ConfigError(f"Invalid 'unlock' setting: {value!r}")


def load_settings(path: Path) -> Settings:
    """Load settings from a YAML file.

    Raises:
        ConfigError: If the file cannot be read or holds invalid settings.
    """
    try:
        raw = path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw)
    except (OSError, yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read settings from {path}: {exc}") from exc
    logger.debug("Loaded settings from %s", path)
    return Settings.from_mapping(data)
