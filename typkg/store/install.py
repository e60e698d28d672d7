"""Install engine — copy validated packages into the versioned store.

Single-target installs (:func:`install_one`, :func:`install_path`,
:func:`install_version`) fail fast: the first error is raised. Installing
every version of a registered package (:func:`install_all_versions`) keeps
going after a bad version and reports one outcome per version.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from typkg.errors import (
    EntrypointMissing,
    IoFailure,
    MalformedDescriptor,
    NameVersionMismatch,
    NotFound,
    TypkgError,
)
from typkg.models.package import Package
from typkg.models.version import Version
from typkg.registry.manifest import ManifestRegistry
from typkg.schema.descriptor import DESCRIPTOR_FILENAME, validate
from typkg.store.layout import PackageStore
from typkg.utils.discovery import entrypoint_exists, is_package, search
from typkg.utils.fs_ops import CopyPolicy, copy_tree

logger = logging.getLogger(__name__)


class InstallStatus(str, Enum):
    INSTALLED = "installed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class InstallResult:
    """Outcome of installing one package version."""

    name: str
    version: str
    destination: Path
    status: InstallStatus
    error: str = ""

    @property
    def qualified_id(self) -> str:
        return f"{self.name}:{self.version}"


@dataclass
class BatchResult:
    """Per-version outcomes of :func:`install_all_versions`."""

    name: str
    outcomes: list[InstallResult] = field(default_factory=list)

    @property
    def failures(self) -> list[InstallResult]:
        return [o for o in self.outcomes if o.status is InstallStatus.FAILED]

    @property
    def succeeded(self) -> bool:
        """False only when every version failed."""
        return len(self.failures) < len(self.outcomes)


def install_one(package: Package, store: PackageStore, overwrite: bool = False) -> InstallResult:
    """Install a single package into ``store``.

    An already installed version is skipped unless ``overwrite`` is set, in
    which case its files are refreshed from the source.

    Raises:
        IoFailure: The store could not be created or the copy failed. No part
            of the destination is left behind.
    """
    dest = store.version_dir(package.name, package.version)
    result = InstallResult(
        name=package.name,
        version=str(package.version),
        destination=dest,
        status=InstallStatus.INSTALLED,
    )

    if dest.exists() and not overwrite:
        logger.info("%s already exists - skipping", package)
        result.status = InstallStatus.SKIPPED
        return result

    bundle = dest.parent
    created_bundle = not bundle.exists()
    try:
        bundle.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise IoFailure(
            f"failed to create package bundle {bundle}: {exc.strerror or exc}", path=bundle
        ) from exc

    policy = CopyPolicy.OVERWRITE if overwrite else CopyPolicy.SKIP_EXISTING
    try:
        stats = copy_tree(package.source_path, dest, policy)
    except IoFailure as exc:
        if created_bundle:
            _remove_if_empty(bundle)
        raise IoFailure(f"failed to install {package}: {exc}", path=exc.path) from exc

    logger.info("installed %s (%d files)", package, len(stats.copied))
    return result


def install_path(path: str | Path, store: PackageStore) -> list[InstallResult]:
    """Install the package at ``path``, or every package found below it.

    ``path`` itself is tried first; if it is not a package, its
    subdirectories are searched two levels deep.

    Raises:
        NotFound: Neither ``path`` nor anything below it is a package.
    """
    path = Path(path)
    package = is_package(path)
    if package is not None:
        return [install_one(package, store)]

    packages = search(path)
    if not packages:
        raise NotFound(f"no valid packages found in {path}")

    return [install_one(p, store) for p in packages]


def install_version(
    name: str,
    version: Version | str,
    registry: ManifestRegistry,
    store: PackageStore,
) -> InstallResult:
    """Install one version of a registered package, refreshing any stale copy."""
    version = _as_version(version)
    root = registry.resolve(name)
    package = check_version_dir(name, version, root / str(version))
    return install_one(package, store, overwrite=True)


def install_all_versions(
    name: str, registry: ManifestRegistry, store: PackageStore
) -> BatchResult:
    """Install every version directory of a registered package.

    A version that fails its checks or its copy is logged and recorded as
    failed; the remaining versions are still installed.

    Raises:
        UnknownPackage: ``name`` is not registered.
        NotFound: The registered root holds no version directories.
        IoFailure: The registered root cannot be listed. Also raised when ``name``
            cannot be stored as a single directory.
    """
    store.bundle_dir(name)
    root = registry.resolve(name)
    versions = available_versions(root)
    if not versions:
        raise NotFound(f"no versions of {name} found in {root}")

    batch = BatchResult(name=name)
    for version in versions:
        try:
            package = check_version_dir(name, version, root / str(version))
            batch.outcomes.append(install_one(package, store))
        except TypkgError as exc:
            logger.error("%s:%s: %s", name, version, exc)
            batch.outcomes.append(
                InstallResult(
                    name=name,
                    version=str(version),
                    destination=store.version_dir(name, version),
                    status=InstallStatus.FAILED,
                    error=str(exc),
                )
            )
    return batch


def available_versions(root: str | Path) -> list[Version]:
    """Return the subdirectories of ``root`` named as semantic versions, ascending."""
    root = Path(root)
    try:
        children = [p for p in root.iterdir() if p.is_dir()]
    except OSError as exc:
        raise IoFailure(f"failed to list {root}: {exc.strerror or exc}", path=root) from exc

    return sorted(Version.parse(p.name) for p in children if Version.is_valid(p.name))


def check_version_dir(name: str, version: Version | str, directory: str | Path) -> Package:
    """Cross-check a version directory against the descriptor it contains.

    The directory must sit under a folder layout that matches the descriptor
    exactly, so a folder named ``2.0.0`` declaring ``1.9.0`` is rejected.

    Raises:
        NotFound: ``directory`` does not exist.
        MalformedDescriptor: The descriptor is unreadable or not TOML.
        MissingField: The descriptor lacks a required field.
        NameVersionMismatch: Name or version disagree with the descriptor.
        EntrypointMissing: The declared entrypoint does not exist.
    """
    version = _as_version(version)
    directory = Path(directory)
    if not directory.is_dir():
        raise NotFound(f"{name} version {version} not found (searched at {directory})")

    try:
        raw = (directory / DESCRIPTOR_FILENAME).read_bytes()
    except OSError as exc:
        raise MalformedDescriptor(
            f"failed to read {DESCRIPTOR_FILENAME} of {name}:{version}: {exc.strerror or exc}"
        ) from exc

    descriptor = validate(raw)
    if descriptor.name != name:
        raise NameVersionMismatch(
            f"package name ({name}) does not match name in descriptor "
            f"({descriptor.name}:{descriptor.version})"
        )
    if str(descriptor.version) != str(version):
        raise NameVersionMismatch(
            f"package directory name ({version}) does not match version in "
            f"descriptor ({descriptor.version})"
        )

    package = Package.from_descriptor(directory, descriptor)
    if not entrypoint_exists(package):
        raise EntrypointMissing(
            f"package entry point is missing for {package}, looked for {package.entrypoint}"
        )
    return package


def _as_version(version: Version | str) -> Version:
    return version if isinstance(version, Version) else Version.parse(version)


def _remove_if_empty(directory: Path) -> None:
    try:
        directory.rmdir()
    except OSError:
        logger.debug("leaving %s in place, it is not empty", directory)
