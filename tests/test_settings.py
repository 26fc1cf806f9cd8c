"""
Unit tests for FinanceFlow.settings.lib
(covers the section validator, ConfigPaths, and SettingsAPI).

Run with:
    python -m unittest tests.test_settings
"""

from __future__ import annotations

import json
import unittest
from pathlib import Path
from typing import Any, Dict

from FinanceFlow.core.signals import signals
from FinanceFlow.settings import lib
from FinanceFlow.settings.lib import CONFIG_SCHEMA, SettingsAPI, _validate_section
from FinanceFlow.status import status
from tests.base import BaseTestCase

DUMMY_SECRET = {
    "installed": {
        "client_id": "dummy",
        "project_id": "dummy",
        "client_secret": "dummy",
        "auth_uri": "https://example",
        "token_uri": "https://example",
    }
}


def minimal_config() -> Dict[str, Any]:
    return {
        "store": {
            "project_id": "financeflow-test",
            "database": "(default)",
            "owner_field": "ownerUid",
            "probe_collection": "budgetSettings",
            "poll_interval": 30,
        },
        "export": {
            "directory": "",
            "filename_prefix": "FinanceFlow_Export",
        },
    }


def write_json(p: Path, data: Dict[str, Any]) -> None:
    with p.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=4, ensure_ascii=False)


class ValidatorTests(unittest.TestCase):
    store_schema = CONFIG_SCHEMA["store"]["item_schema"]

    def test_valid_section(self):
        _validate_section("store", minimal_config()["store"], self.store_schema)

    def test_not_a_dict(self):
        with self.assertRaises(TypeError):
            _validate_section("store", [], self.store_schema)  # type: ignore

    def test_missing_field(self):
        section = minimal_config()["store"]
        del section["owner_field"]
        with self.assertRaises(ValueError) as cm:
            _validate_section("store", section, self.store_schema)
        self.assertIn("owner_field", str(cm.exception))

    def test_wrong_type(self):
        section = minimal_config()["store"]
        section["poll_interval"] = "30"
        with self.assertRaises(TypeError):
            _validate_section("store", section, self.store_schema)

    def test_bool_is_not_an_int(self):
        section = minimal_config()["store"]
        section["poll_interval"] = True
        with self.assertRaises(TypeError):
            _validate_section("store", section, self.store_schema)

    def test_empty_string(self):
        section = minimal_config()["store"]
        section["probe_collection"] = "  "
        with self.assertRaises(ValueError):
            _validate_section("store", section, self.store_schema)

    def test_minimum(self):
        section = minimal_config()["store"]
        section["poll_interval"] = 0
        with self.assertRaises(ValueError):
            _validate_section("store", section, self.store_schema)


class RealTemplateSmokeTest(BaseTestCase):
    def test_templates_exist(self):
        cp = lib.ConfigPaths()
        self.assertTrue(cp.client_secret_template.exists())
        self.assertTrue(cp.config_template.exists())
        self.assertTrue(cp.auth_dir.is_dir())

    def test_template_is_valid(self):
        with lib.ConfigPaths().config_template.open("r", encoding="utf-8") as f:
            data = json.load(f)
        lib.settings.validate_config_data(data)
        self.assertEqual(data["store"]["owner_field"], lib.DEFAULT_OWNER_FIELD)
        self.assertEqual(data["store"]["probe_collection"], lib.DEFAULT_PROBE_COLLECTION)
        self.assertEqual(data["export"]["filename_prefix"], lib.DEFAULT_FILENAME_PREFIX)


class SettingsAPIBehaviour(BaseTestCase):
    """Functional coverage for SettingsAPI."""

    def setUp(self) -> None:
        super().setUp()

        write_json(lib.settings.config_path, minimal_config())
        write_json(lib.settings.client_secret_path, DUMMY_SECRET)

        self.api: SettingsAPI = lib.settings
        self.api.load_config()
        self.api.load_client_secret()

    def test_get_section_returns_copy(self):
        store = self.api.get_section("store")
        store["project_id"] = "changed"
        self.assertEqual(self.api.get_section("store")["project_id"], "financeflow-test")

    def test_get_unknown_section(self):
        with self.assertRaises(KeyError):
            self.api.get_section("bogus")

    def test_set_section_persists_and_signals(self):
        calls = []

        def _slot(section: str) -> None:
            calls.append(section)

        signals.configSectionChanged.connect(_slot)
        try:
            export = self.api.get_section("export")
            export["directory"] = "/tmp/exports"
            self.api.set_section("export", export)
        finally:
            signals.configSectionChanged.disconnect(_slot)

        self.assertEqual(calls, ["export"])
        with self.api.config_path.open("r", encoding="utf-8") as f:
            on_disk = json.load(f)
        self.assertEqual(on_disk["export"]["directory"], "/tmp/exports")
        self.assertEqual(on_disk["store"], minimal_config()["store"])

    def test_set_section_invalid_value_rollback(self):
        store = self.api.get_section("store")
        store["poll_interval"] = -1

        with self.assertRaises(status.ConfigInvalidException):
            self.api.set_section("store", store)

        self.assertEqual(self.api.get_section("store")["poll_interval"], 30)

    def test_set_unknown_section(self):
        with self.assertRaises(ValueError):
            self.api.set_section("bogus", {})

    def test_revert_section(self):
        store = self.api.get_section("store")
        store["probe_collection"] = "__sentinel__"
        self.api.set_section("store", store)
        self.assertEqual(self.api.get_section("store")["probe_collection"], "__sentinel__")

        self.api.revert_section("store")
        self.assertEqual(self.api.get_section("store")["probe_collection"], lib.DEFAULT_PROBE_COLLECTION)

    def test_load_invalid_config(self):
        data = minimal_config()
        del data["export"]
        write_json(self.api.config_path, data)
        with self.assertRaises(status.ConfigInvalidException):
            self.api.load_config()

    def test_load_malformed_config(self):
        self.api.config_path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(status.ConfigInvalidException):
            self.api.load_config()

    def test_load_missing_config(self):
        self.api.config_path.unlink()
        with self.assertRaises(status.ConfigNotFoundException):
            self.api.load_config()

    def test_validate_client_secret_missing_section(self):
        with self.assertRaises(status.ClientSecretInvalidException):
            self.api.validate_client_secret({"bogus": {}})

    def test_validate_client_secret_missing_fields(self):
        bad = {"installed": {"client_id": "only"}}
        with self.assertRaises(status.ClientSecretInvalidException):
            self.api.validate_client_secret(bad)

    def test_validate_client_secret_web(self):
        self.assertEqual(self.api.validate_client_secret({"web": DUMMY_SECRET["installed"]}), "web")

    def test_save_section_unknown(self):
        with self.assertRaises(ValueError):
            self.api.save_section("does_not_exist")

    def test_client_secret_revert(self):
        self.api.client_secret_path.unlink()
        with self.assertRaises(status.ClientSecretNotFoundException):
            self.api.load_client_secret()

        self.api.revert_client_secret_to_template()
        self.assertTrue(self.api.client_secret_path.exists())
        self.api.load_client_secret()


if __name__ == "__main__":
    unittest.main()
