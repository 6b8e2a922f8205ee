"""Tests for netdiag.session -- plans, state machine and phase sequencing."""

import asyncio
import unittest

from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase

from netdiag.api import Endpoint
from netdiag.errors import SessionStateError
from netdiag.session import (
    Phase,
    ResultSink,
    SessionState,
    SpeedTestRunner,
    TestMode,
    TestPlan,
    TestSession,
)
from server.app import create_app


class RecordingSink(ResultSink):
    """Keeps every callback in order, for assertions."""

    def __init__(self):
        self.events = []

    def on_state_change(self, state):
        self.events.append(("state", state))

    def on_phase_start(self, phase):
        self.events.append(("start", phase))

    def on_ping_result(self, latency_ms):
        self.events.append(("ping", latency_ms))

    def on_live_reading(self, phase, mbps):
        self.events.append(("live", phase, mbps))

    def on_final_reading(self, phase, mbps):
        self.events.append(("final", phase, mbps))

    def on_phase_error(self, phase, message):
        self.events.append(("error", phase, message))

    def of(self, kind):
        return [e for e in self.events if e[0] == kind]


def _endpoint(server) -> Endpoint:
    return Endpoint.from_url(str(server.make_url("/")))


class TestTestPlan(unittest.TestCase):
    def test_defaults(self):
        plan = TestPlan()
        self.assertEqual(plan.mode, TestMode.FULL)
        self.assertEqual(plan.payload_bytes, 25_000_000)

    def test_allowed_sizes(self):
        for size in (10_000_000, 25_000_000, 50_000_000, 100_000_000):
            self.assertEqual(TestPlan(payload_bytes=size).payload_bytes, size)

    def test_other_size_rejected(self):
        with self.assertRaises(ValueError):
            TestPlan(payload_bytes=12_345)

    def test_mode_from_string(self):
        self.assertEqual(TestPlan(mode="upload").mode, TestMode.UPLOAD)

    def test_bad_mode(self):
        with self.assertRaises(ValueError):
            TestPlan(mode="sideways")

    def test_mode_phases(self):
        self.assertTrue(TestMode.FULL.runs_download and TestMode.FULL.runs_upload)
        self.assertFalse(TestMode.DOWNLOAD.runs_upload)
        self.assertFalse(TestMode.UPLOAD.runs_download)


class TestSessionToDict(unittest.TestCase):
    def test_idle(self):
        d = TestSession().to_dict()
        self.assertEqual(d["state"], "idle")
        self.assertIsNone(d["ping_ms"])
        self.assertIsNone(d["download"])
        self.assertEqual(d["plan"]["mode"], "full")


class TestFullSession(AioHTTPTestCase):
    async def get_application(self):
        return create_app()

    async def test_full_10mb(self):
        sink = RecordingSink()
        session = TestSession(plan=TestPlan(TestMode.FULL, 10_000_000))
        await SpeedTestRunner(_endpoint(self.server), sink).run(session)

        self.assertEqual(session.state, SessionState.DONE)
        self.assertIsNone(session.error)
        self.assertIsNotNone(session.ping_ms)
        self.assertGreater(session.download_mbps, 0)
        self.assertGreater(session.upload_mbps, 0)

        starts = [e[1] for e in sink.of("start")]
        self.assertEqual(starts, [Phase.PING, Phase.DOWNLOAD, Phase.UPLOAD])
        finals = [e[1] for e in sink.of("final")]
        self.assertEqual(finals, [Phase.DOWNLOAD, Phase.UPLOAD])
        self.assertEqual(
            [e[1] for e in sink.of("state")],
            [SessionState.RUNNING, SessionState.DONE],
        )

        # Every Live reading of a phase arrives before that phase's Avg.
        last_download = max(i for i, e in enumerate(sink.events) if e[0] == "final" and e[1] is Phase.DOWNLOAD)
        for i, e in enumerate(sink.events):
            if e[0] == "live" and e[1] is Phase.DOWNLOAD:
                self.assertLess(i, last_download)

    async def test_download_only_still_pings(self):
        sink = RecordingSink()
        session = TestSession(plan=TestPlan(TestMode.DOWNLOAD, 10_000_000))
        await SpeedTestRunner(_endpoint(self.server), sink).run(session)

        self.assertEqual(session.state, SessionState.DONE)
        self.assertIsNotNone(session.ping_ms)
        self.assertIsNotNone(session.download_series)
        self.assertIsNone(session.upload_series)

    async def test_upload_only_still_pings(self):
        sink = RecordingSink()
        session = TestSession(plan=TestPlan(TestMode.UPLOAD, 10_000_000))
        await SpeedTestRunner(_endpoint(self.server), sink).run(session)

        self.assertEqual(session.state, SessionState.DONE)
        self.assertEqual(len(sink.of("ping")), 1)
        self.assertIsNone(session.download_series)
        self.assertIsNotNone(session.upload_mbps)

    async def test_session_runs_once(self):
        session = TestSession(plan=TestPlan(TestMode.DOWNLOAD, 10_000_000))
        runner = SpeedTestRunner(_endpoint(self.server))
        await runner.run(session)
        with self.assertRaises(SessionStateError):
            await runner.run(session)


class TestDownloadFailure(AioHTTPTestCase):
    async def get_application(self):
        self.upload_calls = 0

        async def ping(request):
            return web.Response(status=204)

        async def download(request):
            return web.Response(status=500)

        async def upload(request):
            self.upload_calls += 1
            return web.Response(text="OK")

        app = web.Application()
        app.router.add_get("/ping", ping)
        app.router.add_get("/download", download)
        app.router.add_post("/upload", upload)
        return app

    async def test_failed_download_skips_upload(self):
        sink = RecordingSink()
        session = TestSession(plan=TestPlan(TestMode.FULL, 10_000_000))
        await SpeedTestRunner(_endpoint(self.server), sink).run(session)

        self.assertEqual(session.state, SessionState.FAILED)
        self.assertEqual(session.failed_phase, Phase.DOWNLOAD)
        self.assertIn("500", session.error)
        self.assertEqual(self.upload_calls, 0)
        self.assertNotIn(Phase.UPLOAD, [e[1] for e in sink.of("start")])
        self.assertEqual(len(sink.of("error")), 1)
        self.assertEqual(sink.events[-1], ("state", SessionState.FAILED))


class TestDownloadDroppedMidway(AioHTTPTestCase):
    async def get_application(self):
        async def ping(request):
            return web.Response(status=204)

        async def download(request):
            resp = web.StreamResponse()
            resp.content_length = 10_000_000
            await resp.prepare(request)
            for _ in range(8):
                await resp.write(b"a" * 16384)
                await asyncio.sleep(0.1)
            request.transport.close()
            return resp

        app = web.Application()
        app.router.add_get("/ping", ping)
        app.router.add_get("/download", download)
        return app

    async def test_series_keeps_readings_of_failed_phase(self):
        sink = RecordingSink()
        session = TestSession(plan=TestPlan(TestMode.DOWNLOAD, 10_000_000))
        await SpeedTestRunner(_endpoint(self.server), sink).run(session)

        self.assertEqual(session.state, SessionState.FAILED)
        self.assertEqual(session.failed_phase, Phase.DOWNLOAD)

        lives = [e[2] for e in sink.of("live")]
        self.assertGreaterEqual(len(lives), 1)
        self.assertEqual(session.download_series.live, lives)
        self.assertIsNone(session.download_series.average)


class TestPingFailure(AioHTTPTestCase):
    async def get_application(self):
        self.download_calls = 0

        async def ping(request):
            return web.Response(status=502)

        async def download(request):
            self.download_calls += 1
            return web.Response(body=b"")

        app = web.Application()
        app.router.add_get("/ping", ping)
        app.router.add_get("/download", download)
        return app

    async def test_no_successful_ping_fails_session(self):
        sink = RecordingSink()
        session = TestSession(plan=TestPlan(TestMode.DOWNLOAD, 10_000_000))
        await SpeedTestRunner(_endpoint(self.server), sink).run(session)

        self.assertEqual(session.state, SessionState.FAILED)
        self.assertEqual(session.failed_phase, Phase.PING)
        self.assertIsNone(session.ping_ms)
        self.assertEqual(self.download_calls, 0)
        self.assertEqual(sink.of("error")[0][1], Phase.PING)


if __name__ == "__main__":
    unittest.main()
