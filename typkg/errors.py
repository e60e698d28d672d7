"""Error kinds raised by the typkg engine.

Every error carries a complete, human-readable message; the CLI prints it
as a single line and exits non-zero.
"""

from __future__ import annotations


class TypkgError(Exception):
    """Base class for all engine errors."""


# ── Descriptor ───────────────────────────────────────────────────────


class MalformedDescriptor(TypkgError):
    """The descriptor could not be read or does not parse as TOML."""


class MissingField(TypkgError):
    """A required descriptor field is absent or has the wrong type."""

    def __init__(self, field_name: str, reason: str = "is missing"):
        self.field_name = field_name
        super().__init__(f"descriptor field '{field_name}' {reason}")


class NameVersionMismatch(TypkgError):
    """A version directory disagrees with the descriptor it contains."""


class EntrypointMissing(TypkgError):
    """The descriptor's entrypoint does not exist inside the package."""


# ── Registry ─────────────────────────────────────────────────────────


class AlreadyRegistered(TypkgError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f'"{name}" package is already registered')


class UnknownPackage(TypkgError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f'package "{name}" is not a registered package, run typkg register <path>'
        )


class UnregisteredDefault(TypkgError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f'trying to set unregistered package "{name}" as default')


# ── Store ────────────────────────────────────────────────────────────


class NotFound(TypkgError):
    """A package, version, bundle, or store location does not exist."""


class NothingToClean(TypkgError):
    def __init__(self, message: str = "nothing to clean"):
        super().__init__(message)


class AuthError(TypkgError):
    """The GitHub device authorization flow failed."""


class IoFailure(TypkgError):
    """A filesystem operation failed (permissions, disk, corruption)."""

    def __init__(self, message: str, path=None):
        self.path = path
        super().__init__(message)
