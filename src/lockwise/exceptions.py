"""Lockwise exception hierarchy.

All public exceptions inherit from LockwiseError, giving callers a single
base class to catch when they want to handle any Lockwise-specific failure
without swallowing unrelated errors.

Resolver failures are structured: each carries the data needed to render a
diagnosable report (conflict tuples, cycle participants, available
versions) in addition to its message.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class LockwiseError(Exception):
    """Base exception for all Lockwise errors."""


class ParseError(LockwiseError):
    """Raised when a version or requirement string is malformed.

    The offending text is kept on ``text`` so the caller can point at the
    exact token that failed.
    """

    def __init__(self, message: str, text: str = "") -> None:
        super().__init__(message)
        self.text = text


class ConfigError(LockwiseError):
    """Raised when settings are missing, malformed or contradictory."""


class LockfileError(LockwiseError):
    """Raised for unreadable or structurally invalid lockfiles."""


class ResolutionError(LockwiseError):
    """Base class for failures of the dependency resolver."""


@dataclass(frozen=True)
class Conflict:
    """One recorded conflict on a package name.

    Attributes:
        name: The package name that could not be satisfied.
        existing: The activated or locked package version that the
            requirement clashed with, or None when no candidate existed.
        requirement: The dependency request that could not be satisfied.
    """

    name: str
    existing: Any
    requirement: Any

    def describe(self) -> str:
        """Render this conflict as indented report lines."""
        req = self.requirement
        lines: list[str] = []
        if self.existing is not None:
            lines.append(f"  Conflict on: {self.name!r}:")
            if not hasattr(self.existing, "required_by"):
                lines.append(
                    f"    * {self.name} ({self.existing.version}) in lockfile"
                )
            elif self.existing.activated_by is not None:
                lines.append(
                    f"    * {self.name} ({self.existing.version}) "
                    f"activated by {self.existing.activated_by}"
                )
            else:
                lines.append(
                    f"    * {self.name} ({self.existing.version}) required in manifest"
                )
            if req.required_by:
                lines.append(f"    * {req.dependency} required by {req.required_by[-1]}")
            else:
                lines.append(f"    * {req.dependency} required in manifest")
        else:
            lines.append(f"  {req.dependency} not found in any of the sources")
            if req.required_by:
                lines.append(f"      required by {req.required_by[-1]}")
        return "\n".join(lines)


class NotFound(ResolutionError):
    """Raised when a root requirement has no candidate at all.

    No amount of backtracking can manufacture a version that does not
    exist, so this failure is terminal.
    """

    def __init__(
        self,
        requirement: Any,
        available: list[str] | None = None,
        source: Any = None,
    ) -> None:
        self.requirement = requirement
        self.available = list(available or [])
        self.source = source
        dep = requirement.dependency
        if source is not None:
            message = f"Could not find package '{dep}' in {source}."
        else:
            message = f"Could not find package '{dep}' in any of the sources."
        if self.available:
            message += (
                f"\nThe index contains '{dep.name}' at: "
                f"{', '.join(self.available)}"
            )
        super().__init__(message)


class VersionConflict(ResolutionError):
    """Raised when candidates exist but none satisfies every constraint.

    ``conflicts`` holds every recorded conflict, ordered by package name.
    """

    def __init__(self, conflicts: list[Conflict], message: str | None = None) -> None:
        self.conflicts = sorted(conflicts, key=lambda c: c.name)
        if message is None:
            body = "\n".join(c.describe() for c in self.conflicts)
            message = (
                "No compatible versions could be found for required "
                f"dependencies:\n{body}"
            )
        super().__init__(message)

    @property
    def names(self) -> list[str]:
        """Names of every package that could not be satisfied."""
        return [c.name for c in self.conflicts]


class CyclicDependency(ResolutionError):
    """Raised when a package transitively requires an incompatible version of itself.

    ``cycle`` lists the participants in dependency order, starting with the
    package that requires itself.
    """

    def __init__(self, cycle: tuple[str, ...], conflicts: list[Conflict] | None = None) -> None:
        self.cycle = tuple(cycle)
        self.conflicts = list(conflicts or [])
        names = " or ".join(f"package '{n}'" for n in sorted(set(self.cycle)))
        chain = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(
            f"The requested packages depend on each other, "
            f"creating an infinite loop ({chain}). Please remove either {names} "
            "and try again."
        )


class FrozenDrift(LockwiseError):
    """Raised when changes are detected while re-resolution is forbidden.

    The persisted lock state is never modified when this is raised.
    """

    def __init__(self, reasons: list[str]) -> None:
        self.reasons = list(reasons)
        detail = "\n".join(f"* {r}" for r in self.reasons)
        super().__init__(
            "The dependencies changed since the lockfile was written, but "
            f"re-resolution is disabled (frozen).\n{detail}"
        )
