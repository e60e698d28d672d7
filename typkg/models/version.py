"""Semantic versions — strict parsing and precedence ordering.

Follows the grammar from https://semver.org: ``MAJOR.MINOR.PATCH`` with an
optional ``-PRERELEASE`` and ``+BUILD`` suffix. Numeric identifiers may not
carry leading zeros.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import total_ordering

# The regex suggested by semver.org, anchored on both ends.
_SEMVER_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


@total_ordering
@dataclass(frozen=True)
class Version:
    """A parsed semantic version."""

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = field(default_factory=tuple)
    build: tuple[str, ...] = field(default_factory=tuple, compare=False)

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse ``text`` strictly.

        Raises:
            ValueError: If ``text`` is not a valid semantic version.
        """
        match = _SEMVER_RE.match(text) if isinstance(text, str) else None
        if match is None:
            raise ValueError(f"invalid semantic version: {text!r}")

        prerelease = match.group("prerelease")
        build = match.group("build")
        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            patch=int(match.group("patch")),
            prerelease=tuple(prerelease.split(".")) if prerelease else (),
            build=tuple(build.split(".")) if build else (),
        )

    @classmethod
    def is_valid(cls, text: str) -> bool:
        return isinstance(text, str) and _SEMVER_RE.match(text) is not None

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + ".".join(self.build)
        return text

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._precedence_key() < other._precedence_key()

    def _precedence_key(self) -> tuple:
        # A release sorts after every pre-release of the same triple.
        if not self.prerelease:
            pre: tuple = ((1,),)
        else:
            pre = tuple(
                (0, int(ident), "") if ident.isdigit() else (1, 0, ident)
                for ident in self.prerelease
            )
            pre = ((0,),) + pre
        return (self.major, self.minor, self.patch, pre)
