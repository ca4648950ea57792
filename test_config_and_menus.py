import json
import os
import tempfile
import unittest
from unittest import mock

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

import config
from config import DEFAULT_CONFIG, get_config_value, load_config, update_config, validate_config
from menus.poster_menu import parse_position


class TestConfigValidation(unittest.TestCase):
    def test_defaults_are_valid(self):
        is_valid, errors = validate_config(dict(DEFAULT_CONFIG))
        self.assertTrue(is_valid, errors)

    def test_bad_values(self):
        cfg = dict(DEFAULT_CONFIG)
        cfg["default_template"] = "vinyl"
        cfg["device_scale"] = 10
        cfg["http_timeout"] = True
        cfg["spotify_scopes"] = ["ok", 3]

        is_valid, errors = validate_config(cfg)
        self.assertFalse(is_valid)
        joined = "\n".join(errors)
        for key in ("default_template", "device_scale", "http_timeout", "spotify_scopes"):
            self.assertIn(key, joined)

    def test_missing_required_field(self):
        cfg = dict(DEFAULT_CONFIG)
        del cfg["output_dir"]
        is_valid, errors = validate_config(cfg)
        self.assertFalse(is_valid)
        self.assertIn("Missing required field: output_dir", errors)


class TestConfigFile(unittest.TestCase):
    def setUp(self):
        self.td = tempfile.TemporaryDirectory()
        self.addCleanup(self.td.cleanup)
        self.path = os.path.join(self.td.name, "config.json")
        patcher = mock.patch.object(config, "CONFIG_PATH", self.path)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config()

    def test_defaults_fill_missing_keys(self):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"spotify_client_id": "abc"}, f)

        cfg = load_config()
        self.assertEqual(cfg["spotify_client_id"], "abc")
        self.assertEqual(cfg["default_template"], "mobile")

    def test_get_config_value_tolerates_missing_file(self):
        self.assertEqual(get_config_value("output_dir", "fallback"), "fallback")

    def test_update_config_validates_before_saving(self):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(dict(DEFAULT_CONFIG), f)

        ok, _ = update_config("device_scale", 3)
        self.assertTrue(ok)
        ok, message = update_config("device_scale", 99)
        self.assertFalse(ok)
        self.assertIn("device_scale", message)
        ok, _ = update_config("no_such_key", 1)
        self.assertFalse(ok)

        self.assertEqual(load_config()["device_scale"], 3)


class TestParsePosition(unittest.TestCase):
    def test_formats(self):
        self.assertEqual(parse_position("1:23", 200_000), 83_000)
        self.assertEqual(parse_position("83", 200_000), 83_000)
        self.assertEqual(parse_position("0:05.5", 200_000), 5_500)

    def test_clamped_to_track(self):
        self.assertEqual(parse_position("9:00", 200_000), 200_000)

    def test_rejects_garbage(self):
        self.assertIsNone(parse_position("abc", 200_000))
        self.assertIsNone(parse_position("1:75", 200_000))
        self.assertIsNone(parse_position("", 200_000))


if __name__ == "__main__":
    unittest.main()
