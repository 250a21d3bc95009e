import json
import os
import tempfile
import unittest
from neoviper import settings


class SettingsTestCase(unittest.TestCase):
    def tearDown(self) -> None:
        settings.settings.reset_settings_to_default()

    def test_defaults(self):
        self.assertEqual(860833102, settings.settings.network.magic)
        self.assertEqual(53, settings.settings.network.account_version)
        self.assertEqual(1500, settings.settings.builder.valid_until_block_increment)
        self.assertEqual(5760, settings.settings.builder.max_valid_until_block_increment)
        self.assertEqual(0, settings.settings.builder.fee_margin_percent)
        self.assertEqual(3, settings.settings.rpc.max_retries)

    def test_register_merges_sections(self):
        settings.settings.register({"network": {"magic": 894710606}})
        self.assertEqual(894710606, settings.settings.network.magic)
        # untouched keys of the same section survive
        self.assertEqual(53, settings.settings.network.account_version)

    def test_register_new_section(self):
        settings.settings.register({"custom": {"nested": {"value": 1}}})
        self.assertEqual(1, settings.settings.custom.nested.value)
        self.assertIn("custom", settings.settings)

    def test_reset(self):
        settings.settings.register({"builder": {"fee_margin_percent": 10}})
        settings.settings.reset_settings_to_default()
        self.assertEqual(0, settings.settings.builder.fee_margin_percent)
        self.assertEqual(0, settings.Settings.default_settings["builder"]["fee_margin_percent"])

    def test_from_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "settings.json")
            with open(path, "w") as f:
                json.dump({"network": {"magic": 1234}}, f)
            s = settings.Settings.from_file(path)
        self.assertEqual(1234, s.network.magic)
        self.assertEqual(1234, s["network"]["magic"])
        self.assertIsNone(s.get("rpc"))
        self.assertEqual(1, len(s))
