"""Settings — where typkg keeps its data, read from the environment.

Packages are installed in ``{data-dir}/typst/packages/{namespace}/{name}/{version}``
where ``{data-dir}`` is:
- ``$TYPKG_DATA_DIR`` when set (tests and sandboxes)
- ``$XDG_DATA_HOME`` or ``~/.local/share`` on Linux
- ``~/Library/Application Support`` on macOS
- ``%APPDATA%`` on Windows
"""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass, field
from pathlib import Path

PRODUCT_DIR = "typst"
PACKAGES_DIR = "packages"
MANIFEST_FILE = "manifest.yaml"
DEFAULT_NAMESPACE = "local"

# Public OAuth app used for the GitHub device flow.
DEFAULT_GITHUB_CLIENT_ID = "cd13a10db89e2100f7f2"


def platform_data_dir() -> Path:
    """Return the platform's per-user data directory."""
    system = platform.system()

    if system == "Windows":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"

    if system == "Darwin":
        return Path.home() / "Library" / "Application Support"

    xdg_data = os.getenv("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


@dataclass
class Settings:
    """Resolved locations and options for one CLI invocation."""

    data_dir: Path = field(default_factory=platform_data_dir)
    namespace: str = DEFAULT_NAMESPACE
    config_path: Path = field(default_factory=lambda: Path.home() / ".typkg" / "config.yaml")
    github_client_id: str = DEFAULT_GITHUB_CLIENT_ID

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls()
        if os.getenv("TYPKG_DATA_DIR"):
            settings.data_dir = Path(os.environ["TYPKG_DATA_DIR"])
        if os.getenv("TYPKG_NAMESPACE"):
            settings.namespace = os.environ["TYPKG_NAMESPACE"]
        if os.getenv("TYPKG_CONFIG"):
            settings.config_path = Path(os.environ["TYPKG_CONFIG"])
        if os.getenv("TYPKG_GITHUB_CLIENT_ID"):
            settings.github_client_id = os.environ["TYPKG_GITHUB_CLIENT_ID"]
        return settings

    @property
    def product_dir(self) -> Path:
        return self.data_dir / PRODUCT_DIR

    @property
    def manifest_path(self) -> Path:
        return self.product_dir / MANIFEST_FILE
