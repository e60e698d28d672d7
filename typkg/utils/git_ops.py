"""Git operations — resolve a package source to a local directory, cloning URLs."""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from git import GitCommandError, Repo

from typkg.errors import IoFailure, NotFound

logger = logging.getLogger(__name__)

GIT_URL_PREFIXES = ("http://", "https://", "git@", "git://", "ssh://")


@dataclass
class SourceHandle:
    """Tracks a resolved package source, including whether it was cloned.

    Use as a context manager so temporary clones are cleaned up::

        with ensure_local_source(url_or_path) as handle:
            install_path(handle.local_path, store)
        # temp clone (if any) is deleted here
    """

    local_path: Path
    """Filesystem path to the source (may be a temp clone)."""

    source_url: str = ""
    """Original URL if the source was cloned, empty for local directories."""

    is_temp_clone: bool = False

    def __enter__(self) -> "SourceHandle":
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Remove the temporary clone directory, if applicable."""
        if self.is_temp_clone and self.local_path.exists():
            shutil.rmtree(self.local_path, ignore_errors=True)


def is_git_url(source: str) -> bool:
    return source.startswith(GIT_URL_PREFIXES)


def ensure_local_source(source: str, token: str | None = None) -> SourceHandle:
    """Return a local directory for ``source``, cloning it if it is a Git URL.

    Args:
        source: Local directory or Git URL.
        token: GitHub access token used for private ``https://github.com`` URLs.

    Raises:
        NotFound: ``source`` is neither an existing directory nor a Git URL.
        IoFailure: The clone failed.
    """
    if is_git_url(source):
        return SourceHandle(
            local_path=_clone_repo(source, token),
            source_url=source,
            is_temp_clone=True,
        )

    path = Path(source)
    if path.is_dir():
        return SourceHandle(local_path=path)

    raise NotFound(f"not a directory or Git URL: {source}")


def with_token(url: str, token: str | None) -> str:
    """Embed ``token`` in an https GitHub URL so private repositories can be cloned."""
    if not token:
        return url
    parts = urlsplit(url)
    if parts.scheme != "https" or parts.hostname != "github.com" or parts.username:
        return url
    return urlunsplit(parts._replace(netloc=f"x-access-token:{token}@{parts.netloc}"))


def _clone_repo(url: str, token: str | None) -> Path:
    """Shallow-clone a Git repo to a temporary directory."""
    clone_dir = Path(tempfile.mkdtemp(prefix="typkg_"))
    logger.info("cloning %s", url)
    try:
        Repo.clone_from(with_token(url, token), clone_dir, depth=1)
    except GitCommandError as exc:
        shutil.rmtree(clone_dir, ignore_errors=True)
        # The command line may contain the token, so report the plain URL.
        raise IoFailure(f"failed to clone {url} (git exit status {exc.status})") from None
    return clone_dir
