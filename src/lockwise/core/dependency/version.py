"""Versions and version requirements.

This module provides the value types every other part of the resolver is
built on: ``Version`` (an ordered tuple of numeric and string segments) and
``Requirement`` (a conjunction of operator/version clauses).

Ordering rules
--------------
Versions compare segment by segment. Numeric segments compare numerically,
string segments lexically, and a string segment orders *below* any numeric
segment. Shorter versions are padded with ``0``. A string segment marks a
pre-release, so ``1.0.a`` orders below ``1.0``::

    >>> Version.parse("1.0.a") < Version.parse("1.0") < Version.parse("1.0.1")
    True

Requirement syntax
------------------
``=``, ``!=``, ``>``, ``<``, ``>=``, ``<=`` and the pessimistic ``~>``
operator, comma separated. A bare version means ``=``. ``~> 2.1`` accepts
``>= 2.1, < 3`` and ``~> 2.1.3`` accepts ``>= 2.1.3, < 2.2``.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field
from typing import Iterable, Union

from lockwise.exceptions import ParseError

Segment = Union[int, str]

# ---------------------------------------------------------------------------
# Version
# ---------------------------------------------------------------------------

_VERSION_RE = re.compile(r"^[0-9]+(?:[.\-][0-9A-Za-z]+)*$")
_SEGMENT_RE = re.compile(r"[0-9]+|[A-Za-z]+")


def _compare_segments(a: Segment, b: Segment) -> int:
    if isinstance(a, int) and isinstance(b, int):
        return (a > b) - (a < b)
    if isinstance(a, str) and isinstance(b, str):
        return (a > b) - (a < b)
    # A string segment (pre-release marker) sorts below any number.
    return -1 if isinstance(a, str) else 1


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """A package version.

    Attributes:
        raw: The version text as authored (e.g., "1.4.3" or "2.0.0-beta.1").
        segments: Parsed segments, ints for numeric runs and strings for
            alphabetic runs.
    """

    raw: str
    segments: tuple[Segment, ...] = field(repr=False)

    @classmethod
    def parse(cls, text: str | "Version") -> "Version":
        """Parse a version string.

        Args:
            text: Version text such as "1.2.3", "1.0.pre" or "2.0.0-rc.1".
                A ``Version`` is returned unchanged.

        Returns:
            The parsed ``Version``.

        Raises:
            ParseError: If *text* is not a well-formed version.
        """
        if isinstance(text, Version):
            return text
        if not isinstance(text, str):
            raise ParseError(f"Malformed version number string {text!r}", str(text))
        stripped = text.strip()
        if not _VERSION_RE.match(stripped):
            raise ParseError(f"Malformed version number string {text!r}", text)
        segments: list[Segment] = []
        for part in re.split(r"[.\-]", stripped):
            for token in _SEGMENT_RE.findall(part):
                segments.append(int(token) if token.isdigit() else token)
        return cls(raw=stripped, segments=tuple(segments))

    @property
    def canonical(self) -> tuple[Segment, ...]:
        """Segments with trailing zero segments removed."""
        segs = list(self.segments)
        while len(segs) > 1 and segs[-1] == 0:
            segs.pop()
        return tuple(segs)

    @property
    def is_prerelease(self) -> bool:
        """True when any segment is alphabetic."""
        return any(isinstance(s, str) for s in self.segments)

    def release(self) -> "Version":
        """Return the release this version is a pre-release of (or itself)."""
        if not self.is_prerelease:
            return self
        segs: list[Segment] = []
        for seg in self.segments:
            if isinstance(seg, str):
                break
            segs.append(seg)
        return Version.parse(".".join(str(s) for s in segs) or "0")

    def bump(self) -> "Version":
        """Return the exclusive upper bound used by the ``~>`` operator.

        ``1.4.3`` bumps to ``1.5`` and ``2.0`` bumps to ``3``.
        """
        segs = [s for s in self.release().segments]
        if len(segs) > 1:
            segs.pop()
        segs[-1] = int(segs[-1]) + 1
        return Version.parse(".".join(str(s) for s in segs))

    def segment(self, index: int) -> Segment:
        """Return segment *index*, padding with 0 past the end."""
        return self.segments[index] if index < len(self.segments) else 0

    def _cmp(self, other: "Version") -> int:
        length = max(len(self.segments), len(other.segments))
        for i in range(length):
            result = _compare_segments(self.segment(i), other.segment(i))
            if result:
                return result
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._cmp(other) == 0

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._cmp(other) < 0

    def __hash__(self) -> int:
        return hash(self.canonical)

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"Version({self.raw!r})"


# ---------------------------------------------------------------------------
# Requirement
# ---------------------------------------------------------------------------

_OPERATORS = ("=", "!=", ">", "<", ">=", "<=", "~>")

_CLAUSE_RE = re.compile(
    r"^\s*(?P<op>~>|>=|<=|!=|=|>|<)?\s*(?P<ver>[0-9][0-9A-Za-z.\-]*)\s*$"
)

# Rank used only to give clauses a stable canonical order.
_OP_RANK = {op: i for i, op in enumerate(_OPERATORS)}


def _clause_satisfied(op: str, target: Version, version: Version) -> bool:
    if op == "=":
        return version == target
    if op == "!=":
        return version != target
    if op == ">":
        return version > target
    if op == "<":
        return version < target
    if op == ">=":
        return version >= target
    if op == "<=":
        return version <= target
    if op == "~>":
        return target <= version < target.bump()
    raise ParseError(f"Unknown requirement operator {op!r}", op)  # pragma: no cover


@dataclass(frozen=True)
class Requirement:
    """A version constraint: every clause must hold for a version to match.

    Attributes:
        clauses: ``(operator, Version)`` pairs in canonical order.
    """

    clauses: tuple[tuple[str, Version], ...]

    def __post_init__(self) -> None:
        for op, _ in self.clauses:
            if op not in _OPERATORS:
                raise ParseError(f"Illformed requirement operator {op!r}", op)
        ordered = tuple(
            sorted(set(self.clauses), key=lambda c: (c[1], _OP_RANK[c[0]]))
        )
        object.__setattr__(self, "clauses", ordered)

    @classmethod
    def parse(cls, text: str | Iterable[str] | "Requirement" | None) -> "Requirement":
        """Parse requirement text such as ``"~> 2.0, >= 2.0.3"``.

        Args:
            text: A comma separated requirement string, an iterable of
                clause strings, a ``Requirement`` (returned unchanged), or
                None / empty for the default "any version" requirement.

        Raises:
            ParseError: If any clause is malformed.
        """
        if isinstance(text, Requirement):
            return text
        if text is None:
            return cls.default()
        if isinstance(text, str):
            atoms = [a for a in text.split(",")]
        else:
            atoms = list(text)
        atoms = [a.strip() for a in atoms if a and a.strip()]
        if not atoms:
            return cls.default()
        clauses: list[tuple[str, Version]] = []
        for atom in atoms:
            m = _CLAUSE_RE.match(atom)
            if not m:
                raise ParseError(f"Illformed requirement {atom!r}", atom)
            op = m.group("op") or "="
            clauses.append((op, Version.parse(m.group("ver"))))
        return cls(tuple(clauses))

    @classmethod
    def default(cls) -> "Requirement":
        """Return the requirement accepting any version (``>= 0``)."""
        return cls(((">=", Version.parse("0")),))

    @classmethod
    def exact(cls, version: Version | str) -> "Requirement":
        return cls((("=", Version.parse(version)),))

    @classmethod
    def at_least(cls, version: Version | str) -> "Requirement":
        return cls(((">=", Version.parse(version)),))

    @property
    def is_default(self) -> bool:
        return self == Requirement.default()

    @property
    def is_prerelease(self) -> bool:
        """True when any clause names a pre-release version."""
        return any(v.is_prerelease for _, v in self.clauses)

    def satisfied_by(self, version: Version | str) -> bool:
        """Check whether *version* satisfies every clause.

        Raises:
            ParseError: If *version* is a malformed string.
        """
        ver = Version.parse(version)
        return all(_clause_satisfied(op, target, ver) for op, target in self.clauses)

    def __and__(self, other: "Requirement") -> "Requirement":
        return Requirement(self.clauses + other.clauses)

    def __str__(self) -> str:
        return ", ".join(f"{op} {v}" for op, v in self.clauses)

    def __repr__(self) -> str:
        return f"Requirement({str(self)!r})"
