"""Tests for ui.dashboard -- cell text, client info line and the console sink."""

import io
import unittest

from rich.console import Console

from netdiag.api import ClientInfo
from netdiag.constants import CELL_ERROR
from netdiag.reachability import Column, DohAnswer
from netdiag.session import Phase, SessionState
from ui.dashboard import (
    ConsoleSink,
    ReachabilityTable,
    create_sparkline,
    format_cell,
    format_client_info,
)


def _console():
    return Console(file=io.StringIO(), force_terminal=False, width=100)


class TestFormatCell(unittest.TestCase):
    def test_pending(self):
        self.assertEqual(format_cell(None), "…")

    def test_answer(self):
        self.assertEqual(format_cell(DohAnswer("1.2.3.4", 7.6)), "1.2.3.4\n[dim]8 ms[/dim]")

    def test_error(self):
        self.assertEqual(format_cell(CELL_ERROR), "[red]Error[/red]")

    def test_latency(self):
        self.assertEqual(format_cell(41.2), "41 ms")


class TestFormatClientInfo(unittest.TestCase):
    def test_full(self):
        text = format_client_info(ClientInfo("1.2.3.4", "DE", "Berlin"))
        self.assertEqual(text, "Your IP: 1.2.3.4 | City: Berlin | Country: \U0001F1E9\U0001F1EA DE")

    def test_nothing_known(self):
        self.assertEqual(format_client_info(ClientInfo()), "Could not retrieve IP information.")


class TestSparkline(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(create_sparkline([]), "No data")

    def test_shape(self):
        line = create_sparkline([1.0, 5.0, 9.0])
        self.assertEqual(len(line), 3)
        self.assertEqual(line[0], "▁")
        self.assertEqual(line[-1], "█")

    def test_flat(self):
        self.assertEqual(create_sparkline([3.0, 3.0]), "▁▁")


class TestConsoleSink(unittest.TestCase):
    def test_phase_lines(self):
        con = _console()
        sink = ConsoleSink(con)

        sink.on_phase_start(Phase.PING)
        sink.on_ping_result(12.0)
        sink.on_phase_start(Phase.DOWNLOAD)
        sink.on_live_reading(Phase.DOWNLOAD, 80.0)
        sink.on_final_reading(Phase.DOWNLOAD, 95.5)
        sink.on_state_change(SessionState.DONE)

        out = con.file.getvalue()
        self.assertIn("Ping", out)
        self.assertIn("12.0 ms", out)
        self.assertIn("95.50 Mbps", out)
        self.assertIsNone(sink.progress)

    def test_error_line(self):
        con = _console()
        sink = ConsoleSink(con)
        sink.on_phase_start(Phase.UPLOAD)
        sink.on_phase_error(Phase.UPLOAD, "Upload network error.")
        self.assertIn("Error (upload): Upload network error.", con.file.getvalue())
        self.assertIsNone(sink.progress)


class TestReachabilityTable(unittest.TestCase):
    def test_update_cell(self):
        con = _console()
        with ReachabilityTable(["a.com", "b.com"], console_=con) as table:
            table.update_cell("a.com", Column.HTTP, 22.0)
            table.update_cell("b.com", Column.CLOUDFLARE, CELL_ERROR)

        self.assertEqual(table.rows["a.com"].http_latency_ms, 22.0)
        self.assertEqual(table.rows["b.com"].cloudflare, CELL_ERROR)
        self.assertIsNone(table.rows["a.com"].google)


if __name__ == "__main__":
    unittest.main()
