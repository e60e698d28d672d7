"""Package data models — descriptors, discovered packages, installed bundles."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from typkg.models.version import Version


@dataclass(frozen=True)
class Descriptor:
    """The ``[package]`` table of a ``typst.toml`` with only the required fields.

    The compiler requires every package to define:
    - ``name``: the package's identifier in its namespace.
    - ``version``: a full major-minor-patch triple.
    - ``entrypoint``: the main Typst file evaluated when the package is imported.
    """

    name: str
    version: Version
    entrypoint: PurePosixPath


@dataclass(frozen=True)
class Package:
    """A collection of Typst files and assets that can be imported as a unit.

    Only constructed after the descriptor at ``source_path`` parsed and the
    entrypoint was found under ``source_path``.
    """

    source_path: Path
    name: str
    version: Version
    entrypoint: PurePosixPath

    @classmethod
    def from_descriptor(cls, source_path: Path, descriptor: Descriptor) -> "Package":
        return cls(
            source_path=Path(source_path),
            name=descriptor.name,
            version=descriptor.version,
            entrypoint=descriptor.entrypoint,
        )

    @property
    def qualified_id(self) -> str:
        return f"{self.name}:{self.version}"

    @property
    def entrypoint_path(self) -> Path:
        return self.source_path / self.entrypoint

    def __str__(self) -> str:
        return self.qualified_id


@dataclass
class InstalledPackage:
    """A package name with every version present in the local store."""

    name: str
    versions: list[Version] = field(default_factory=list)

    @property
    def latest(self) -> Version | None:
        return max(self.versions) if self.versions else None
