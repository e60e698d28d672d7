"""List the packages installed in the local store."""

from __future__ import annotations

from collections import defaultdict

from typkg.errors import NotFound
from typkg.models.package import InstalledPackage
from typkg.store.layout import PackageStore
from typkg.utils.discovery import search


def list_installed(store: PackageStore) -> list[InstalledPackage]:
    """Group installed versions by package name.

    Version folders without a valid ``typst.toml`` are silently ignored.

    Raises:
        NotFound: No valid packages are installed.
    """
    versions = defaultdict(set)
    for package in search(store.root):
        versions[package.name].add(package.version)

    if not versions:
        raise NotFound("no valid packages found")

    return [
        InstalledPackage(name=name, versions=sorted(found))
        for name, found in sorted(versions.items())
    ]
