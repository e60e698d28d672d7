"""typkg CLI — the main entry point for the local Typst package manager."""

import logging
import os
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich import box

from typkg import __version__
from typkg.config import Settings
from typkg.errors import TypkgError
from typkg.models.version import Version

console = Console()
err_console = Console(stderr=True)


class VersionParamType(click.ParamType):
    name = "version"

    def convert(self, value, param, ctx):
        if isinstance(value, Version):
            return value
        try:
            return Version.parse(value)
        except ValueError:
            self.fail(f"{value!r} is not a valid semantic version", param, ctx)


VERSION = VersionParamType()


class TypkgGroup(click.Group):
    """Reports engine errors as a single line on stderr and exits with status 1."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except TypkgError as exc:
            err_console.print(f"[bold red]error:[/] {escape(str(exc))}")
            ctx.exit(1)


def _store(settings: Settings):
    from typkg.store.layout import PackageStore

    return PackageStore.from_settings(settings)


def _registry(settings: Settings):
    from typkg.registry.manifest import ManifestRegistry

    return ManifestRegistry.get_or_create(settings.manifest_path)


@click.group(cls=TypkgGroup)
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """typkg — install local Typst packages.

    Packages are copied into the Typst data directory under
    packages/local/<name>/<version>, where the compiler picks them up as
    @local/<name>:<version>.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=False)],
        force=True,
    )
    ctx.obj = Settings.from_env()


# ── Install ──────────────────────────────────────────────────────────


@main.command()
@click.argument("path", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("--git", "git_url", default=None, help="Clone a Git repository and install from it")
@click.pass_obj
def install(settings: Settings, path: Path | None, git_url: str | None):
    """Install packages into the local package directory.

    PATH (default: the current directory) is installed if it is a package;
    otherwise packages are searched for two subdirectories deep.
    """
    from typkg.auth.device_flow import load_credentials
    from typkg.store.install import InstallStatus, install_path
    from typkg.utils.git_ops import ensure_local_source

    store = _store(settings)

    if git_url:
        credentials = load_credentials(settings.config_path)
        token = credentials.access_token if credentials else None
        with ensure_local_source(git_url, token=token) as handle:
            results = install_path(handle.local_path / path if path else handle.local_path, store)
    else:
        results = install_path(path or Path(os.getcwd()), store)

    for result in results:
        if result.status is InstallStatus.SKIPPED:
            console.print(f"{result.qualified_id} already exists - [yellow]skipping[/]")
        else:
            console.print(f"[green]installed[/] {result.qualified_id}")


@main.command()
@click.argument("name", required=False)
@click.argument("version", required=False, type=VERSION)
@click.pass_obj
def add(settings: Settings, name: str | None, version: Version | None):
    """Install a registered package by NAME.

    Without VERSION every version directory of the package is installed;
    with VERSION only that version is installed, replacing a stale copy.
    Without NAME the default package is used.
    """
    from typkg.store.install import InstallStatus, install_all_versions, install_version

    registry = _registry(settings)
    store = _store(settings)

    name = name or registry.default()
    if not name:
        raise click.UsageError("no package NAME given and no default package set")

    if version is not None:
        result = install_version(name, version, registry, store)
        console.print(f"[green]installed[/] {result.qualified_id}")
        return

    batch = install_all_versions(name, registry, store)
    for outcome in batch.outcomes:
        if outcome.status is InstallStatus.FAILED:
            console.print(f"[red]failed[/] {outcome.qualified_id}: {escape(outcome.error)}")
        elif outcome.status is InstallStatus.SKIPPED:
            console.print(f"{outcome.qualified_id} already exists - [yellow]skipping[/]")
        else:
            console.print(f"[green]installed[/] {outcome.qualified_id}")

    if not batch.succeeded:
        raise TypkgError(f"no version of {name} could be installed")


# ── List ─────────────────────────────────────────────────────────────


@main.command(name="ls")
@click.pass_obj
def list_packages(settings: Settings):
    """List locally installed packages."""
    from typkg.store.listing import list_installed

    packages = list_installed(_store(settings))

    table = Table(box=box.ROUNDED)
    table.add_column("package", style="cyan")
    table.add_column("versions")
    for package in packages:
        table.add_row(package.name, "\n".join(str(v) for v in package.versions))

    console.print(table)


# ── Clean ────────────────────────────────────────────────────────────


@main.command(name="clean")
@click.argument("name", required=False)
@click.argument("version", required=False, type=VERSION)
@click.option("--all", "everything", is_flag=True, help="Remove the whole Typst data directory")
@click.pass_obj
def clean_packages(settings: Settings, name: str | None, version: Version | None, everything: bool):
    """Clean installed packages.

    With NAME and VERSION only that version is removed; with NAME every
    version is removed and the package is unregistered; with neither every
    local package is removed.
    """
    from typkg.store.clean import CleanScope, clean

    target = f"{name}:{version}" if name and version else name or "all"
    console.print(f"[bold]cleaning[/] {target}")

    result = clean(
        _store(settings),
        _registry(settings),
        name=name,
        version=version,
        scope=CleanScope.ALL if everything else CleanScope.LOCAL,
    )

    for path in result.removed:
        console.print(f"  [green]removed[/] {escape(str(path))}")
    for failure in result.failures:
        err_console.print(f"  [yellow]warning:[/] {escape(str(failure))}")


# ── Registry ─────────────────────────────────────────────────────────


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--name", "-n", default=None, help="Registered name (default: directory name)")
@click.pass_obj
def register(settings: Settings, path: Path, name: str | None):
    """Register a directory of package versions under a name."""
    path = path.resolve()
    name = name or path.name

    _registry(settings).register(name, path)
    console.print(f"registered [cyan]{escape(name)}[/] -> {escape(str(path))}")


@main.command()
@click.argument("name")
@click.pass_obj
def unregister(settings: Settings, name: str):
    """Remove a package name from the registry."""
    _registry(settings).unregister(name)
    console.print(f"unregistered [cyan]{escape(name)}[/]")


@main.command()
@click.argument("name", required=False)
@click.pass_obj
def default(settings: Settings, name: str | None):
    """Show the default package, or set it to NAME."""
    registry = _registry(settings)

    if name is None:
        current = registry.default()
        if current:
            console.print(current)
        else:
            console.print("[yellow]No default package set.[/]")
        return

    registry.set_default(name)
    console.print(f"default package: [cyan]{escape(name)}[/]")


@main.command()
@click.pass_obj
def registered(settings: Settings):
    """List registered packages and their source directories."""
    registry = _registry(settings)
    entries = registry.entries()

    if not entries:
        console.print("[yellow]No registered packages.[/]")
        return

    current = registry.default()
    table = Table(box=box.ROUNDED)
    table.add_column("package", style="cyan")
    table.add_column("source")
    table.add_column("default", justify="center")
    for name, path in sorted(entries.items()):
        table.add_row(name, str(path), "*" if name == current else "")

    console.print(table)


# ── Auth ─────────────────────────────────────────────────────────────


@main.command()
@click.pass_obj
def auth(settings: Settings):
    """Authenticate with GitHub to install packages from private repositories."""
    from typkg.auth.device_flow import login, save_credentials

    def show_code(code):
        console.print(f"device activation code: [bold]{code.user_code}[/]")
        click.prompt(
            "hit enter to open the device authentication url",
            default="",
            show_default=False,
            prompt_suffix="",
        )
        if click.launch(code.verification_uri) != 0:
            err_console.print(
                f"[red]failed to open the device authentication url.[/] "
                f"open manually: {code.verification_uri}"
            )

    credentials = login(settings.github_client_id, on_code=show_code)
    save_credentials(settings.config_path, credentials)
    console.print("[green]you've been logged in[/]")


if __name__ == "__main__":
    main()
