"""Tests for the typkg command-line interface."""

import tempfile
from pathlib import Path

from click.testing import CliRunner

from typkg.cli import main
from typkg.registry.manifest import ManifestRegistry


def _write_package(root: Path, name: str = "acme", version: str = "1.2.0") -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "typst.toml").write_text(
        f'[package]\nname = "{name}"\nversion = "{version}"\nentrypoint = "main.typ"\n'
    )
    (root / "main.typ").write_text("= Hello\n")
    return root


def _invoke(tmpdir: str, *args: str):
    env = {
        "TYPKG_DATA_DIR": str(Path(tmpdir) / "data"),
        "TYPKG_CONFIG": str(Path(tmpdir) / "config.yaml"),
    }
    return CliRunner().invoke(main, list(args), env=env)


def _store_root(tmpdir: str) -> Path:
    return Path(tmpdir) / "data" / "typst" / "packages" / "local"


def test_install_and_ls():
    with tempfile.TemporaryDirectory() as tmpdir:
        pkg = _write_package(Path(tmpdir) / "acme-pkg")

        result = _invoke(tmpdir, "install", str(pkg))
        assert result.exit_code == 0, result.output
        assert "installed acme:1.2.0" in result.output
        assert (_store_root(tmpdir) / "acme" / "1.2.0" / "main.typ").exists()

        result = _invoke(tmpdir, "install", str(pkg))
        assert result.exit_code == 0
        assert "skipping" in result.output

        result = _invoke(tmpdir, "ls")
        assert result.exit_code == 0
        assert "acme" in result.output
        assert "1.2.0" in result.output


def test_install_nothing_found_exits_nonzero():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "empty").mkdir()
        result = _invoke(tmpdir, "install", str(Path(tmpdir) / "empty"))
        assert result.exit_code == 1
        assert "error:" in result.output
        assert "no valid packages found" in result.output


def test_ls_empty_store_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "ls")
        assert result.exit_code == 1
        assert "no valid packages found" in result.output


def test_register_add_and_clean():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = Path(tmpdir) / "acme"
        _write_package(source / "1.0.0", version="1.0.0")
        _write_package(source / "1.2.0", version="1.2.0")

        result = _invoke(tmpdir, "register", str(source))
        assert result.exit_code == 0, result.output

        result = _invoke(tmpdir, "add", "acme")
        assert result.exit_code == 0, result.output
        assert (_store_root(tmpdir) / "acme" / "1.0.0").is_dir()
        assert (_store_root(tmpdir) / "acme" / "1.2.0").is_dir()

        result = _invoke(tmpdir, "clean", "acme", "1.0.0")
        assert result.exit_code == 0, result.output
        assert not (_store_root(tmpdir) / "acme" / "1.0.0").exists()

        result = _invoke(tmpdir, "clean", "acme")
        assert result.exit_code == 0, result.output
        assert not (_store_root(tmpdir) / "acme").exists()

        manifest = ManifestRegistry(Path(tmpdir) / "data" / "typst" / "manifest.yaml")
        assert "acme" not in manifest


def test_register_twice_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = Path(tmpdir) / "acme"
        source.mkdir()
        assert _invoke(tmpdir, "register", str(source)).exit_code == 0

        result = _invoke(tmpdir, "register", str(source))
        assert result.exit_code == 1
        assert "already registered" in result.output


def test_add_single_version_and_default():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = Path(tmpdir) / "templates"
        _write_package(source / "2.0.0", name="acme", version="2.0.0")

        assert _invoke(tmpdir, "register", str(source), "--name", "acme").exit_code == 0
        assert _invoke(tmpdir, "default", "acme").exit_code == 0

        result = _invoke(tmpdir, "default")
        assert "acme" in result.output

        result = _invoke(tmpdir, "add")
        assert result.exit_code == 0, result.output

        result = _invoke(tmpdir, "add", "acme", "2.0.0")
        assert result.exit_code == 0, result.output
        assert "installed acme:2.0.0" in result.output


def test_add_every_version_failing_exits_nonzero():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = Path(tmpdir) / "acme"
        _write_package(source / "2.0.0", version="1.9.0")
        _invoke(tmpdir, "register", str(source))

        result = _invoke(tmpdir, "add", "acme")
        assert result.exit_code == 1
        assert "failed" in result.output


def test_add_without_name_or_default():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "add")
        assert result.exit_code == 2


def test_default_unregistered_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "default", "ghost")
        assert result.exit_code == 1
        assert "unregistered" in result.output


def test_clean_unknown_package():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "clean", "ghost")
        assert result.exit_code == 1
        assert "not found" in result.output


def test_clean_nothing():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "clean")
        assert result.exit_code == 1
        assert "nothing to clean" in result.output


def test_clean_rejects_bad_version():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "clean", "acme", "latest")
        assert result.exit_code == 2


def test_registered_lists_entries():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = Path(tmpdir) / "acme"
        source.mkdir()
        _invoke(tmpdir, "register", str(source))
        _invoke(tmpdir, "unregister", "ghost")

        result = _invoke(tmpdir, "registered")
        assert result.exit_code == 0
        assert "acme" in result.output
