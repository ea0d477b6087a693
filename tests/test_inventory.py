"""Tests for local inventory discovery and installed-status annotation."""

import json

import pytest

from modkeeper.catalog.inventory import (
    LocalInventory,
    annotate_installed,
    read_sidecar_manifest,
)
from modkeeper.catalog.ledger import VersionLedger
from modkeeper.catalog.models import InstalledPackage, PackageEntry, Registry

pytestmark = [pytest.mark.unit, pytest.mark.core]


@pytest.fixture
def ledger(tmp_path):
    return VersionLedger(str(tmp_path / "installed-versions.json"))


class TestReadSidecarManifest:
    """Test read_sidecar_manifest."""

    def test_keys_are_lower_cased(self, mods_dir):
        (mods_dir / "Foo.json").write_text(json.dumps({"Version": "1.2", "Name": "Foo"}))

        manifest = read_sidecar_manifest(str(mods_dir / "Foo.dll"))

        assert manifest == {"version": "1.2", "name": "Foo"}

    def test_missing_or_malformed(self, mods_dir):
        assert read_sidecar_manifest(str(mods_dir / "Foo.dll")) is None
        (mods_dir / "Foo.json").write_text("[1, 2]")
        assert read_sidecar_manifest(str(mods_dir / "Foo.dll")) is None


class TestLocalInventory:
    """Test LocalInventory.list_installed."""

    def test_missing_directory_is_empty(self, tmp_path, ledger):
        assert LocalInventory(ledger).list_installed(str(tmp_path / "nope")) == []

    def test_lists_payloads_only(self, mods_dir, ledger):
        for name in ("Foo.dll", "Foo.json", ".hidden", "Bar.dll.tmp", "Bar.dll"):
            (mods_dir / name).write_bytes(b"x")
        (mods_dir / "subdir").mkdir()

        installed = LocalInventory(ledger).list_installed(str(mods_dir))

        assert [package.file_name for package in installed] == ["Bar.dll", "Foo.dll"]

    def test_version_from_ledger_then_manifest(self, mods_dir, ledger):
        (mods_dir / "Foo.dll").write_bytes(b"x")
        (mods_dir / "Foo.json").write_text(json.dumps({"version": "0.9", "name": "Foo!"}))
        (mods_dir / "Bar.dll").write_bytes(b"x")
        (mods_dir / "Bar.json").write_text(json.dumps({"version": "3.0"}))
        (mods_dir / "Baz.dll").write_bytes(b"x")
        ledger.set("foo.dll", "2.0.0")

        installed = {
            package.file_name: package
            for package in LocalInventory(ledger).list_installed(str(mods_dir))
        }

        assert installed["Foo.dll"].version == "2.0.0"
        assert installed["Foo.dll"].display_name == "Foo!"
        assert installed["Bar.dll"].version == "3.0"
        assert installed["Baz.dll"].version == ""
        assert installed["Baz.dll"].path == str(mods_dir / "Baz.dll")


class TestAnnotateInstalled:
    """Test annotate_installed."""

    def test_matches_file_names_case_insensitively(self):
        registry = Registry(
            mods=(
                PackageEntry(id="Foo", payload_file_name="Foo.dll", version="2.3.1"),
                PackageEntry(id="Bar", payload_file_name="Bar.dll", version="1.0"),
            )
        )

        annotated = annotate_installed(
            registry, [InstalledPackage(file_name="foo.DLL", version="2.0.0")]
        )

        foo, bar = annotated.mods
        assert foo.is_installed and foo.installed_version == "2.0.0"
        assert bar.is_installed is False
        assert registry.mods[0].is_installed is False

    def test_scenario_b_outdated_install_has_update(self):
        """Ledger at 2.0.0 and latest 2.3.1 means an update is available."""
        registry = Registry(
            mods=(PackageEntry(id="Foo", payload_file_name="Foo.dll", version="2.3.1"),)
        )

        annotated = annotate_installed(
            registry, [InstalledPackage(file_name="Foo.dll", version="2.0.0")]
        )

        assert annotated.mods[0].has_update is True
        assert annotated.updates == annotated.mods

    def test_not_installed_never_has_update(self):
        entry = PackageEntry(
            id="Foo", payload_file_name="Foo.dll", version="9.0", installed_version="1.0"
        )

        annotated = annotate_installed(Registry(mods=(entry,)), [])

        assert annotated.mods[0].is_installed is False
        assert annotated.mods[0].has_update is False

    def test_unknown_local_version_is_not_an_update(self):
        registry = Registry(
            mods=(PackageEntry(id="Foo", payload_file_name="Foo.dll", version="2.3.1"),)
        )

        annotated = annotate_installed(registry, [InstalledPackage(file_name="Foo.dll")])

        assert annotated.mods[0].is_installed is True
        assert annotated.mods[0].has_update is False

    def test_entry_without_payload_name_is_never_installed(self):
        registry = Registry(mods=(PackageEntry(id="Foo"),))

        annotated = annotate_installed(registry, [InstalledPackage(file_name="")])

        assert annotated.mods[0].is_installed is False
