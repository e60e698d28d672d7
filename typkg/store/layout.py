"""Store layout — paths of the versioned package store.

Packages always live in folders named ``{namespace}/{name}/{version}`` below
the Typst packages directory. A version folder exists iff that version is
installed.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from typkg.config import PACKAGES_DIR, Settings
from typkg.errors import IoFailure
from typkg.models.version import Version


@dataclass(frozen=True)
class PackageStore:
    """The on-disk destination for installed packages."""

    product_dir: Path
    """Top-level product data directory (``{data-dir}/typst``)."""

    namespace: str = "local"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PackageStore":
        return cls(product_dir=settings.product_dir, namespace=settings.namespace)

    @property
    def packages_dir(self) -> Path:
        return self.product_dir / PACKAGES_DIR

    @property
    def root(self) -> Path:
        """The namespace directory holding one folder per package name."""
        return self.packages_dir / self.namespace

    def bundle_dir(self, name: str) -> Path:
        return self._checked(self.root / name, depth=1)

    def version_dir(self, name: str, version: Version | str) -> Path:
        return self._checked(self.root / name / str(version), depth=2)

    def is_installed(self, name: str, version: Version | str) -> bool:
        return self.version_dir(name, version).is_dir()

    def _checked(self, path: Path, depth: int) -> Path:
        """Refuse paths that do not sit exactly ``depth`` levels below :attr:`root`."""
        root = Path(os.path.normpath(self.root.absolute()))
        normalized = Path(os.path.normpath(path.absolute()))
        if len(normalized.parts) != len(root.parts) + depth or not normalized.is_relative_to(root):
            raise IoFailure(f"refusing to use {path}, it is outside the package store {self.root}", path=path)
        return path
