"""Target platforms and their matching relation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass(frozen=True)
class Platform:
    """A build target such as ``pure`` or ``x86_64-linux-cpython``.

    The generic platform (``pure``) matches every target. A specific
    platform matches only itself or one of its declared ``aliases``.

    Attributes:
        name: Platform identifier.
        aliases: Other platform names this build is declared compatible
            with. Not part of equality.
    """

    name: str
    aliases: frozenset[str] = field(default=frozenset(), compare=False)

    GENERIC_NAME: ClassVar[str] = "pure"

    @classmethod
    def parse(cls, text: "str | Platform | None") -> "Platform":
        if isinstance(text, Platform):
            return text
        if not text:
            return PURE
        return cls(text.strip())

    @property
    def is_generic(self) -> bool:
        return self.name == self.GENERIC_NAME

    @property
    def parts(self) -> tuple[str, ...]:
        """Split an ``arch-os-impl`` triple into its components."""
        return tuple(self.name.split("-"))

    def matches(self, target: "Platform") -> bool:
        """Return True if a build for this platform can run on *target*.

        Either side may declare the other as an alias.
        """
        if self.is_generic:
            return True
        return (
            self.name == target.name
            or target.name in self.aliases
            or self.name in target.aliases
        )

    def __str__(self) -> str:
        return self.name


PURE = Platform(Platform.GENERIC_NAME)
