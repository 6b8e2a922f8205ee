"""Tests for CLI plan validation and the speed-test runner wiring."""

import json
import os
import tempfile
import unittest
from unittest import mock

from aiohttp.test_utils import AioHTTPTestCase

from netdiag.api import Endpoint
from netdiag.session import SessionState, TestMode, TestPlan
from server.app import create_app


class TestBuildPlan(unittest.TestCase):
    """Test the _build_plan function from netdiag_cli.py."""

    def _build(self, mode="full", size=25):
        # Import here to avoid triggering side effects at module level
        from netdiag_cli import _build_plan
        return _build_plan(mode, size)

    def test_defaults_valid(self):
        plan = self._build()
        self.assertEqual(plan.mode, TestMode.FULL)
        self.assertEqual(plan.payload_bytes, 25_000_000)

    def test_sizes_map_to_bytes(self):
        for mb in (10, 25, 50, 100):
            self.assertEqual(self._build(size=mb).payload_bytes, mb * 1_000_000)

    def test_size_not_offered(self):
        with self.assertRaises(ValueError):
            self._build(size=30)

    def test_mode_not_offered(self):
        with self.assertRaises(ValueError):
            self._build(mode="both")


class TestSaveConfigFlag(unittest.TestCase):
    def _main(self, path, *argv):
        from netdiag_cli import main
        with mock.patch("netdiag.config._config_path", return_value=path), \
                mock.patch("netdiag_cli.configure_logging"), \
                mock.patch("sys.argv", ["netdiag", *argv]):
            main()

    def test_flags_become_defaults(self):
        from netdiag.config import load_config

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            self._main(path, "--save-config", "--url", "10.0.0.2:9000", "--mode", "upload", "--size", "50")
            with mock.patch("netdiag.config._config_path", return_value=path):
                cfg = load_config()

        self.assertEqual(cfg["base_url"], "http://10.0.0.2:9000")
        self.assertEqual(cfg["mode"], "upload")
        self.assertEqual(cfg["payload_bytes"], 50_000_000)
        self.assertEqual(cfg["port"], 8787)

    def test_invalid_size_not_saved(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with self.assertRaises(SystemExit) as ctx:
                self._main(path, "--save-config", "--size", "30")
            self.assertEqual(ctx.exception.code, 1)
            self.assertFalse(os.path.exists(path))


class TestRunSpeedtest(AioHTTPTestCase):
    async def get_application(self):
        return create_app()

    async def test_json_output_and_file(self):
        from netdiag_cli import run_speedtest

        endpoint = Endpoint.from_url(str(self.server.make_url("/")))
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "result.json")
            with mock.patch("builtins.print") as fake_print:
                session = await run_speedtest(
                    endpoint,
                    TestPlan(TestMode.DOWNLOAD, 10_000_000),
                    json_output=True,
                    output_file=path,
                )
            self.assertEqual(session.state, SessionState.DONE)

            printed = json.loads(fake_print.call_args[0][0])
            self.assertEqual(printed["state"], "done")
            self.assertIn("client", printed)

            with open(path) as fh:
                saved = json.load(fh)
            self.assertEqual(saved["plan"]["mode"], "download")


if __name__ == "__main__":
    unittest.main()
