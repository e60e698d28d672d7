"""Package discovery — decide whether a directory is a package, or find packages below it."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from typkg.errors import TypkgError
from typkg.models.package import Package
from typkg.schema.descriptor import DESCRIPTOR_FILENAME, validate

logger = logging.getLogger(__name__)

# Directories below the search root that are visited (root's children and grandchildren)
MAX_SEARCH_DEPTH = 2


def is_package(path: str | Path) -> Package | None:
    """Return the package at ``path``, or ``None`` if it is not one.

    A directory is a package only if:
    - ``typst.toml`` is present in the directory itself.
    - ``typst.toml`` contains a valid ``[package]`` table.
    - the declared entrypoint is an existing file inside the directory.

    Never raises for a non-package; the reason is logged instead.
    """
    path = Path(path)

    try:
        raw = (path / DESCRIPTOR_FILENAME).read_bytes()
    except OSError as exc:
        logger.debug("%s: no readable %s (%s)", path, DESCRIPTOR_FILENAME, exc.strerror)
        return None

    try:
        descriptor = validate(raw)
    except TypkgError as exc:
        logger.warning("%s: invalid %s: %s", path, DESCRIPTOR_FILENAME, exc)
        return None

    package = Package.from_descriptor(path, descriptor)
    if not entrypoint_exists(package):
        logger.warning(
            "%s: entrypoint %s is missing", package.qualified_id, package.entrypoint
        )
        return None

    return package


def entrypoint_exists(package: Package) -> bool:
    """Check the entrypoint is a file and stays inside the package directory."""
    try:
        root = package.source_path.resolve()
        target = package.entrypoint_path.resolve()
    except OSError:
        return False
    return target.is_relative_to(root) and target.is_file()


def search(root: str | Path) -> list[Package]:
    """Find every package one or two directory levels below ``root``.

    ``root`` itself is never tested; use :func:`is_package` for that.
    Entries are visited in sorted name order so results are reproducible.
    Directories that cannot be listed are skipped, and symlinked
    directories are tested but never descended into.
    """
    packages: list[Package] = []
    _walk(Path(root), 1, packages)
    return packages


def _walk(directory: Path, depth: int, packages: list[Package]) -> None:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        logger.debug("skipping %s: %s", directory, exc.strerror or exc)
        return

    for entry in entries:
        try:
            if not entry.is_dir():
                continue
            is_link = entry.is_symlink()
        except OSError:
            continue

        child = Path(entry.path)
        package = is_package(child)
        if package is not None:
            packages.append(package)

        if depth < MAX_SEARCH_DEPTH and not is_link:
            _walk(child, depth + 1, packages)
