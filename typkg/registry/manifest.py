"""Manifest registry — file-backed mapping of package names to source roots.

The manifest is a small YAML document::

    package:
      version: 0.1.0
      default: acme
    packages:
      acme: /home/me/typst/acme

Every call re-reads the document, applies one change, and writes the whole
document back before returning. Nothing is cached between calls and there is
no locking: two processes mutating the same manifest race, and the last
write wins.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

import yaml

from typkg import __version__
from typkg.config import Settings
from typkg.errors import AlreadyRegistered, IoFailure, UnknownPackage, UnregisteredDefault

logger = logging.getLogger(__name__)


class ManifestRegistry:
    """Persistent name → source-path registry with an optional default package."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @classmethod
    def get_or_create(cls, path: str | Path | None = None) -> "ManifestRegistry":
        """Open the manifest at ``path``, writing an empty one if needed.

        An absent or unparsable document is replaced with an empty one.

        Raises:
            IoFailure: The manifest directory or file cannot be written.
        """
        registry = cls(path if path is not None else Settings.from_env().manifest_path)
        data = registry._read()
        if data is None:
            registry._write(_empty_document())
        return registry

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def resolve(self, name: str) -> Path:
        """Return the source root registered under ``name``."""
        packages = self._load()["packages"]
        if name not in packages:
            raise UnknownPackage(name)
        return Path(packages[name])

    def default(self) -> str | None:
        return self._load()["package"].get("default")

    def entries(self) -> dict[str, Path]:
        return {name: Path(path) for name, path in self._load()["packages"].items()}

    def __contains__(self, name: str) -> bool:
        return name in self._load()["packages"]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def register(self, name: str, path: str | Path) -> None:
        """Register ``name`` → ``path``. Never overwrites an existing entry."""
        data = self._load()
        if name in data["packages"]:
            raise AlreadyRegistered(name)
        data["packages"][name] = str(path)
        self._write(data)
        logger.info("registered %s -> %s", name, path)

    def unregister(self, name: str) -> None:
        """Remove ``name``; a no-op if it is not registered."""
        data = self._load()
        if data["packages"].pop(name, None) is None:
            logger.debug("%s is not registered, nothing to unregister", name)
        if data["package"].get("default") == name:
            del data["package"]["default"]
        self._write(data)

    def set_default(self, name: str) -> None:
        data = self._load()
        if name not in data["packages"]:
            raise UnregisteredDefault(name)
        data["package"]["default"] = name
        self._write(data)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> dict:
        data = self._read()
        if data is None:
            data = _empty_document()
        return data

    def _read(self) -> dict | None:
        """Return the parsed document, or ``None`` if absent or unusable."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise IoFailure(f"failed to read manifest {self.path}: {exc.strerror}", path=self.path) from exc

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            logger.warning("manifest %s is corrupted, starting over: %s", self.path, exc)
            return None

        if not isinstance(data, dict):
            logger.warning("manifest %s has an unexpected shape, starting over", self.path)
            return None

        package = data.get("package") if isinstance(data.get("package"), dict) else {}
        packages = data.get("packages") if isinstance(data.get("packages"), dict) else {}
        packages = {str(k): v for k, v in packages.items() if isinstance(v, str)}
        default = package.get("default")
        if not isinstance(default, str) or default not in packages:
            package.pop("default", None)
        return {"package": package, "packages": packages}

    def _write(self, data: dict) -> None:
        """Atomically replace the manifest with ``data``."""
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise IoFailure(f"failed to write manifest {self.path}: {exc.strerror or exc}", path=self.path) from exc


def _empty_document() -> dict:
    return {"package": {"version": __version__}, "packages": {}}
