"""Filesystem primitives — directory copy with rollback, recursive removal."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from typkg.errors import IoFailure

logger = logging.getLogger(__name__)

# Never copied into the store.
IGNORED_NAMES = {".git"}


class CopyPolicy(str, Enum):
    SKIP_EXISTING = "skip_existing"
    OVERWRITE = "overwrite"


@dataclass
class CopyStats:
    """Counts of what a :func:`copy_tree` call did."""

    copied: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)


def copy_tree(src: str | Path, dst: str | Path, policy: CopyPolicy) -> CopyStats:
    """Copy the contents of ``src`` into ``dst``, preserving relative structure.

    ``dst`` is created if needed. With ``SKIP_EXISTING`` files already present
    at the destination are left alone; with ``OVERWRITE`` they are replaced.
    Symlinks are followed and their contents copied; a directory link that
    points back at one of its own ancestors is skipped.

    If anything fails, ``dst`` is removed in its entirety before the error is
    raised, so a half-copied tree is never left behind.

    Raises:
        IoFailure: Naming the file or directory that could not be copied.
    """
    src = Path(src)
    dst = Path(dst)
    stats = CopyStats()

    try:
        dst.mkdir(parents=True, exist_ok=True)
        # Resolved directories on the path from ``src`` down to each walked directory.
        lineage = {os.fspath(src): {os.path.realpath(src)}}
        for dirpath, dirnames, filenames in os.walk(src, onerror=_raise, followlinks=True):
            seen = lineage.pop(dirpath)
            kept = []
            for d in sorted(dirnames):
                if d in IGNORED_NAMES:
                    continue
                real = os.path.realpath(os.path.join(dirpath, d))
                if real in seen:
                    logger.warning("not following %s, it links back to %s", os.path.join(dirpath, d), real)
                    continue
                lineage[os.path.join(dirpath, d)] = seen | {real}
                kept.append(d)
            dirnames[:] = kept

            current = Path(dirpath)
            target_dir = dst / current.relative_to(src)
            _make_dir(target_dir, policy)

            for name in sorted(filenames):
                if name in IGNORED_NAMES:
                    continue
                _copy_entry(current / name, target_dir / name, policy, stats)
    except OSError as exc:
        failed = exc.filename or src
        _rollback(dst)
        raise IoFailure(
            f"failed to copy {failed} into {dst}: {exc.strerror or exc}", path=failed
        ) from exc

    return stats


def remove_tree(path: str | Path) -> None:
    """Recursively delete ``path``.

    Raises:
        IoFailure: Naming the first path that could not be removed.
    """
    path = Path(path)
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        else:
            shutil.rmtree(path)
    except OSError as exc:
        failed = exc.filename or path
        raise IoFailure(f"failed to remove {failed}: {exc.strerror or exc}", path=failed) from exc


def _copy_entry(source: Path, target: Path, policy: CopyPolicy, stats: CopyStats) -> None:
    if os.path.lexists(target):
        if policy is CopyPolicy.SKIP_EXISTING:
            stats.skipped.append(target)
            return
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()

    shutil.copy2(source, target)
    stats.copied.append(target)


def _make_dir(target: Path, policy: CopyPolicy) -> None:
    # Older installs may hold a directory symlink where a real directory now belongs.
    if target.is_symlink() and policy is CopyPolicy.OVERWRITE:
        target.unlink()
    target.mkdir(exist_ok=True)


def _rollback(dst: Path) -> None:
    if not os.path.lexists(dst):
        return
    try:
        remove_tree(dst)
    except IoFailure as exc:
        logger.error("could not roll back partial copy at %s: %s", dst, exc)


def _raise(exc: OSError) -> None:
    raise exc
