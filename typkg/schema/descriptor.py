"""Descriptor validation — parse a ``typst.toml`` into a :class:`Descriptor`.

Only the ``[package]`` table is inspected and only ``name``, ``version`` and
``entrypoint`` are required. Any other keys or tables are ignored so newer
descriptors keep working.
"""

from __future__ import annotations

import re
import tomllib
from pathlib import PurePosixPath, PureWindowsPath

from typkg.errors import MalformedDescriptor, MissingField
from typkg.models.package import Descriptor
from typkg.models.version import Version

DESCRIPTOR_FILENAME = "typst.toml"
PACKAGE_SECTION = "package"
REQUIRED_FIELDS = ("name", "version", "entrypoint")

# Package names become a single directory in the store.
NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*")


def validate(descriptor_bytes: bytes) -> Descriptor:
    """Validate raw descriptor bytes.

    Args:
        descriptor_bytes: Contents of a ``typst.toml`` file.

    Returns:
        The parsed descriptor.

    Raises:
        MalformedDescriptor: The bytes are not UTF-8 or not valid TOML.
        MissingField: The ``[package]`` table or a required field is absent
            or has the wrong type.
    """
    try:
        data = tomllib.loads(descriptor_bytes.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise MalformedDescriptor(f"descriptor is not valid UTF-8: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise MalformedDescriptor(f"descriptor is not valid TOML: {exc}") from exc

    section = data.get(PACKAGE_SECTION)
    if section is None:
        raise MissingField(PACKAGE_SECTION, "table is missing")
    if not isinstance(section, dict):
        raise MissingField(PACKAGE_SECTION, "must be a table")

    for field_name in REQUIRED_FIELDS:
        if field_name not in section:
            raise MissingField(field_name)
        if not isinstance(section[field_name], str):
            raise MissingField(field_name, "must be a string")

    name = section["name"]
    if not name.strip():
        raise MissingField("name", "must not be empty")
    if not is_valid_name(name):
        raise MissingField("name", f"is not a valid package name: {name!r}")

    try:
        version = Version.parse(section["version"])
    except ValueError:
        raise MissingField(
            "version", f"is not a valid semantic version: {section['version']!r}"
        ) from None

    return Descriptor(
        name=name,
        version=version,
        entrypoint=_parse_entrypoint(section["entrypoint"]),
    )


def is_valid_name(name: str) -> bool:
    return NAME_PATTERN.fullmatch(name) is not None


def _parse_entrypoint(raw: str) -> PurePosixPath:
    """Normalize the entrypoint to a relative POSIX path."""
    if not raw.strip():
        raise MissingField("entrypoint", "must not be empty")

    entrypoint = PurePosixPath(raw.replace("\\", "/"))
    if entrypoint.is_absolute() or PureWindowsPath(raw).is_absolute():
        raise MissingField("entrypoint", f"must be a relative path, got {raw!r}")
    return entrypoint
