"""Tests for the installed-version ledger."""

import json
import os

import pytest

from modkeeper.catalog.ledger import VersionLedger, default_ledger_path

pytestmark = [pytest.mark.unit]


class TestVersionLedger:
    """Test VersionLedger persistence and case-insensitive keys."""

    def test_round_trip(self, tmp_path):
        path = tmp_path / "installed-versions.json"
        ledger = VersionLedger(str(path))

        ledger.set("Foo.dll", "2.3.1")

        assert ledger.get("Foo.dll") == "2.3.1"
        assert VersionLedger(str(path)).get("Foo.dll") == "2.3.1"

    def test_keys_are_case_insensitive(self, tmp_path):
        ledger = VersionLedger(str(tmp_path / "v.json"))
        ledger.set("Foo.dll", "1.0")

        assert ledger.get("FOO.DLL") == "1.0"

        ledger.set("foo.DLL", "1.1")

        assert ledger.as_dict() == {"foo.DLL": "1.1"}

    def test_whole_file_rewritten(self, tmp_path):
        path = tmp_path / "v.json"
        ledger = VersionLedger(str(path))
        ledger.set("Foo.dll", "1.0")
        ledger.set("Bar.dll", "2.0")

        with open(path, encoding="utf-8") as f:
            assert json.load(f) == {"Bar.dll": "2.0", "Foo.dll": "1.0"}

    def test_missing_file_is_empty(self, tmp_path):
        ledger = VersionLedger(str(tmp_path / "absent.json"))

        assert ledger.get("Foo.dll") is None
        assert ledger.as_dict() == {}

    def test_malformed_file_is_ignored(self, tmp_path):
        path = tmp_path / "v.json"
        path.write_text('["not", "a", "mapping"]')

        assert VersionLedger(str(path)).as_dict() == {}

    def test_non_string_values_are_dropped(self, tmp_path):
        path = tmp_path / "v.json"
        path.write_text(json.dumps({"Foo.dll": "1.0", "Bar.dll": 2}))

        assert VersionLedger(str(path)).as_dict() == {"Foo.dll": "1.0"}

    def test_remove(self, tmp_path):
        ledger = VersionLedger(str(tmp_path / "v.json"))
        ledger.set("Foo.dll", "1.0")

        assert ledger.remove("foo.dll") is True
        assert ledger.remove("foo.dll") is False
        assert ledger.get("Foo.dll") is None

    def test_reload_reads_disk(self, tmp_path):
        path = tmp_path / "v.json"
        ledger = VersionLedger(str(path))
        ledger.set("Foo.dll", "1.0")
        path.write_text(json.dumps({"Foo.dll": "5.0"}))

        assert ledger.get("Foo.dll") == "1.0"
        ledger.reload()
        assert ledger.get("Foo.dll") == "5.0"

    def test_failed_write_is_logged_not_raised(self, tmp_path, mocker):
        ledger = VersionLedger(str(tmp_path / "v.json"))
        mocker.patch(
            "modkeeper.catalog.ledger.atomic_write_json", return_value=False
        )
        warning = mocker.patch("modkeeper.catalog.ledger.logger.warning")

        ledger.set("Foo.dll", "1.0")

        assert ledger.get("Foo.dll") == "1.0"
        warning.assert_called_once()

    def test_default_path_in_user_data_dir(self):
        ledger = VersionLedger()

        assert ledger.path == default_ledger_path()
        assert os.path.basename(ledger.path) == "installed-versions.json"
