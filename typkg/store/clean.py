"""Clean engine — remove installed packages and keep the manifest in sync.

There are a few possible ways a clean is performed (in order):
1. ``name`` and ``version``: remove that one version.
2. ``name`` only: remove every version of that package and unregister it.
3. Neither: remove every package in the local namespace (or, with
   :attr:`CleanScope.ALL`, the whole Typst data directory).

When cleaning the whole namespace only its direct children are removed,
so stray files the compiler would not recognize are left alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from typkg.errors import IoFailure, NothingToClean, NotFound
from typkg.models.version import Version
from typkg.registry.manifest import ManifestRegistry
from typkg.schema.descriptor import is_valid_name
from typkg.store.layout import PackageStore
from typkg.utils.fs_ops import remove_tree

logger = logging.getLogger(__name__)


class CleanScope(str, Enum):
    LOCAL = "local"  # every package in the store's namespace
    ALL = "all"  # the whole product data directory, manifest included


@dataclass
class CleanResult:
    removed: list[Path] = field(default_factory=list)
    failures: list[IoFailure] = field(default_factory=list)
    unregistered: list[str] = field(default_factory=list)


def clean(
    store: PackageStore,
    registry: ManifestRegistry,
    name: str | None = None,
    version: Version | str | None = None,
    scope: CleanScope = CleanScope.LOCAL,
) -> CleanResult:
    """Clean the local package store.

    Raises:
        NotFound: The named version or package bundle does not exist.
        NothingToClean: The store is already empty.
        IoFailure: A path could not be removed.
    """
    if name is None and version is not None:
        raise ValueError("a version can only be cleaned together with a package name")
    if name is not None and not is_valid_name(name):
        raise NotFound(f"failed to clean {name}, not a valid package name")
    if version is not None and not Version.is_valid(str(version)):
        raise NotFound(f"failed to clean {name}:{version}, not a valid version")

    if name is not None and version is not None:
        return _clean_version(store, name, str(version))
    if name is not None:
        return _clean_bundle(store, registry, name)
    if scope is CleanScope.ALL:
        return _clean_product_dir(store)
    return _clean_namespace(store, registry)


def _clean_version(store: PackageStore, name: str, version: str) -> CleanResult:
    target = store.version_dir(name, version)
    if not target.is_dir():
        raise NotFound(f"failed to clean {name}:{version}, package not found")

    remove_tree(target)
    logger.info("removed %s:%s", name, version)
    result = CleanResult(removed=[target])

    bundle = target.parent
    if not any(bundle.iterdir()):
        remove_tree(bundle)
    return result


def _clean_bundle(store: PackageStore, registry: ManifestRegistry, name: str) -> CleanResult:
    """Remove every version of ``name``, continuing past versions that fail."""
    bundle = store.bundle_dir(name)
    if not bundle.is_dir():
        raise NotFound(f"failed to clean {name}, package bundle not found")

    result = CleanResult()
    version_dirs = sorted(p for p in bundle.iterdir() if p.is_dir())
    for version_dir in version_dirs:
        try:
            remove_tree(version_dir)
        except IoFailure as exc:
            logger.error("%s", exc)
            result.failures.append(exc)
        else:
            result.removed.append(version_dir)

    if result.failures:
        if not result.removed:
            raise result.failures[0]
        # Versions are still on disk, so the package stays registered.
        return result

    remove_tree(bundle)
    registry.unregister(name)
    result.unregistered.append(name)
    logger.info("removed every version of %s", name)
    return result


def _clean_namespace(store: PackageStore, registry: ManifestRegistry) -> CleanResult:
    root = store.root
    bundles = sorted(p for p in root.iterdir() if p.is_dir()) if root.is_dir() else []
    if not bundles:
        raise NothingToClean()

    result = CleanResult()
    for bundle in bundles:
        remove_tree(bundle)
        result.removed.append(bundle)
        if bundle.name in registry:
            registry.unregister(bundle.name)
            result.unregistered.append(bundle.name)
    return result


def _clean_product_dir(store: PackageStore) -> CleanResult:
    target = store.product_dir
    if not target.is_dir() or not any(target.iterdir()):
        raise NothingToClean()

    remove_tree(target)
    logger.info("removed %s", target)
    return CleanResult(removed=[target])
