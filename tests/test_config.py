"""Tests for netdiag.config -- configuration persistence."""

import os
import tempfile
import unittest
from unittest import mock

from netdiag.config import (
    DEFAULTS,
    load_config,
    save_config,
)


class TestConfigDefaults(unittest.TestCase):
    def test_defaults_have_required_keys(self):
        for key in ("base_url", "mode", "payload_bytes", "host", "port", "read_timeout"):
            self.assertIn(key, DEFAULTS)

    def test_default_payload_is_offered_size(self):
        self.assertIn(DEFAULTS["payload_bytes"], (10_000_000, 25_000_000, 50_000_000, 100_000_000))


class TestLoadSaveConfig(unittest.TestCase):
    def test_load_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("netdiag.config._config_path", return_value=path):
                cfg = load_config()
                self.assertEqual(cfg["mode"], "full")
                self.assertEqual(cfg["payload_bytes"], 25_000_000)

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("netdiag.config._config_path", return_value=path):
                save_config({"base_url": "http://10.0.0.2:8787", "payload_bytes": 100_000_000})
                cfg = load_config()
                self.assertEqual(cfg["base_url"], "http://10.0.0.2:8787")
                self.assertEqual(cfg["payload_bytes"], 100_000_000)
                # Defaults still present
                self.assertEqual(cfg["mode"], "full")

    def test_corrupt_file_returns_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                f.write("NOT JSON")
            with mock.patch("netdiag.config._config_path", return_value=path):
                with self.assertLogs("netdiag.config", level="WARNING"):
                    cfg = load_config()
                self.assertEqual(cfg["port"], 8787)


if __name__ == "__main__":
    unittest.main()
