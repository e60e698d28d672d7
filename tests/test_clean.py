"""Tests for the clean engine and installed-package listing."""

import tempfile
from pathlib import Path

import pytest

from typkg.errors import IoFailure, NothingToClean, NotFound
from typkg.registry.manifest import ManifestRegistry
from typkg.store import clean as clean_module
from typkg.store.clean import CleanScope, clean
from typkg.store.install import install_path
from typkg.store.layout import PackageStore
from typkg.store.listing import list_installed


def _write_package(root: Path, name: str = "acme", version: str = "1.2.0") -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "typst.toml").write_text(
        f'[package]\nname = "{name}"\nversion = "{version}"\nentrypoint = "main.typ"\n'
    )
    (root / "main.typ").write_text("= Hello\n")
    return root


def _setup(tmpdir: str):
    root = Path(tmpdir)
    store = PackageStore(product_dir=root / "typst")
    registry = ManifestRegistry.get_or_create(store.product_dir / "manifest.yaml")
    return root, store, registry


def _install(root: Path, store: PackageStore, name: str, *versions: str) -> None:
    for version in versions:
        install_path(_write_package(root / "src" / name / version, name, version), store)


def test_clean_single_version():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0", "1.2.0")

        result = clean(store, registry, name="acme", version="1.0.0")

        assert result.removed == [store.version_dir("acme", "1.0.0")]
        assert not store.is_installed("acme", "1.0.0")
        assert store.is_installed("acme", "1.2.0")


def test_clean_last_version_removes_bundle():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0")

        clean(store, registry, name="acme", version="1.0.0")
        assert not store.bundle_dir("acme").exists()


def test_clean_missing_version():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0")
        with pytest.raises(NotFound):
            clean(store, registry, name="acme", version="9.0.0")
        assert store.is_installed("acme", "1.0.0")


@pytest.mark.parametrize("name", ["..", "", ".", "x/..", "acme/.."])
def test_clean_invalid_name_leaves_store_alone(name):
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0")

        with pytest.raises(NotFound):
            clean(store, registry, name=name)
        assert store.is_installed("acme", "1.0.0")


def test_clean_invalid_version_leaves_bundle_alone():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0")

        with pytest.raises(NotFound):
            clean(store, registry, name="acme", version="..")
        assert store.is_installed("acme", "1.0.0")


def test_clean_bundle_removes_all_versions_and_unregisters():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0", "1.2.0")
        registry.register("acme", root / "src" / "acme")

        result = clean(store, registry, name="acme")

        assert not store.bundle_dir("acme").exists()
        assert result.unregistered == ["acme"]
        assert "acme" not in registry
        assert len(result.removed) == 2


def test_clean_unknown_bundle_mutates_nothing():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0")
        registry.register("ghost", "/somewhere")
        manifest_before = registry.path.read_text()

        with pytest.raises(NotFound):
            clean(store, registry, name="ghost")

        assert registry.path.read_text() == manifest_before
        assert store.is_installed("acme", "1.0.0")


def test_clean_bundle_partial_failure_keeps_registration(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0", "1.2.0")
        registry.register("acme", root / "src" / "acme")
        real_remove = clean_module.remove_tree

        def locked_remove(path):
            if Path(path).name == "1.0.0":
                raise IoFailure(f"failed to remove {path}: locked", path=path)
            real_remove(path)

        monkeypatch.setattr(clean_module, "remove_tree", locked_remove)

        result = clean(store, registry, name="acme")

        assert len(result.failures) == 1
        assert result.removed == [store.version_dir("acme", "1.2.0")]
        assert "acme" in registry


def test_clean_bundle_every_version_failed(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0")

        def locked_remove(path):
            raise IoFailure(f"failed to remove {path}: locked", path=path)

        monkeypatch.setattr(clean_module, "remove_tree", locked_remove)

        with pytest.raises(IoFailure) as exc:
            clean(store, registry, name="acme")
        assert "1.0.0" in str(exc.value)


def test_clean_everything_in_namespace():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0")
        _install(root, store, "other", "0.1.0")
        registry.register("acme", root / "src" / "acme")
        (store.root / "README.txt").write_text("not a package")

        result = clean(store, registry)

        assert len(result.removed) == 2
        assert store.root.exists()
        assert (store.root / "README.txt").exists()
        assert registry.entries() == {}
        assert registry.path.exists()


def test_clean_empty_store():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, store, registry = _setup(tmpdir)
        with pytest.raises(NothingToClean):
            clean(store, registry)


def test_clean_scope_all_removes_product_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, registry = _setup(tmpdir)
        _install(root, store, "acme", "1.0.0")

        clean(store, registry, scope=CleanScope.ALL)
        assert not store.product_dir.exists()

        with pytest.raises(NothingToClean):
            clean(store, registry, scope=CleanScope.ALL)


def test_clean_version_without_name_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, store, registry = _setup(tmpdir)
        with pytest.raises(ValueError):
            clean(store, registry, version="1.0.0")


# --- listing ---


def test_list_installed_groups_versions():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store, _ = _setup(tmpdir)
        _install(root, store, "zeta", "0.1.0")
        _install(root, store, "acme", "1.10.0", "1.2.0")

        packages = list_installed(store)
        assert [p.name for p in packages] == ["acme", "zeta"]
        assert [str(v) for v in packages[0].versions] == ["1.2.0", "1.10.0"]
        assert str(packages[0].latest) == "1.10.0"


def test_list_installed_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, store, _ = _setup(tmpdir)
        with pytest.raises(NotFound):
            list_installed(store)
