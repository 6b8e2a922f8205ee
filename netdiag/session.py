"""
Speed-test session orchestration.

A :class:`TestSession` moves ``IDLE -> RUNNING -> DONE | FAILED``.  The
:class:`SpeedTestRunner` is its only mutator: it runs the ping, download and
upload phases strictly one after another and reports every reading to a
:class:`ResultSink` as soon as it exists.  Sinks render; they never touch
measurement state.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from .api import Endpoint
from .constants import DEFAULT_PAYLOAD, DEFAULT_READ_TIMEOUT, PAYLOAD_SIZES
from .download import DownloadTester
from .errors import PhaseError, SessionStateError
from .latency import LatencyTester
from .stats import RateSeries, Reading, ReadingKind
from .upload import UploadTester

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plan / session
# ---------------------------------------------------------------------------

class TestMode(enum.Enum):
    __test__ = False

    FULL = "full"
    DOWNLOAD = "download"
    UPLOAD = "upload"

    @property
    def runs_download(self) -> bool:
        return self in (TestMode.FULL, TestMode.DOWNLOAD)

    @property
    def runs_upload(self) -> bool:
        return self in (TestMode.FULL, TestMode.UPLOAD)


class Phase(enum.Enum):
    PING = "ping"
    DOWNLOAD = "download"
    UPLOAD = "upload"


class SessionState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class TestPlan:
    """What the user picked: which phases, and how many bytes per transfer."""

    __test__ = False

    mode: TestMode = TestMode.FULL
    payload_bytes: int = DEFAULT_PAYLOAD

    def __post_init__(self) -> None:
        if not isinstance(self.mode, TestMode):
            object.__setattr__(self, "mode", TestMode(self.mode))
        if self.payload_bytes not in PAYLOAD_SIZES:
            raise ValueError(
                f"Payload size must be one of {', '.join(str(s) for s in PAYLOAD_SIZES)}"
            )

    def to_dict(self) -> dict:
        return {"mode": self.mode.value, "payload_bytes": self.payload_bytes}


@dataclass
class TestSession:
    """One end-to-end run of the orchestrator."""

    __test__ = False

    plan: TestPlan = field(default_factory=TestPlan)
    ping_ms: Optional[float] = None
    download_series: Optional[RateSeries] = None
    upload_series: Optional[RateSeries] = None
    state: SessionState = SessionState.IDLE
    error: Optional[str] = None
    failed_phase: Optional[Phase] = None

    @property
    def download_mbps(self) -> Optional[float]:
        return self.download_series.average if self.download_series else None

    @property
    def upload_mbps(self) -> Optional[float]:
        return self.upload_series.average if self.upload_series else None

    def to_dict(self) -> dict:
        return {
            "plan": self.plan.to_dict(),
            "state": self.state.value,
            "ping_ms": round(self.ping_ms, 1) if self.ping_ms is not None else None,
            "download": self.download_series.to_dict() if self.download_series else None,
            "upload": self.upload_series.to_dict() if self.upload_series else None,
            "error": self.error,
            "failed_phase": self.failed_phase.value if self.failed_phase else None,
        }


# ---------------------------------------------------------------------------
# Result sink
# ---------------------------------------------------------------------------

class ResultSink:
    """Receives session progress.  Every hook is optional."""

    def on_state_change(self, state: SessionState) -> None:
        pass

    def on_phase_start(self, phase: Phase) -> None:
        pass

    def on_ping_result(self, latency_ms: float) -> None:
        pass

    def on_live_reading(self, phase: Phase, mbps: float) -> None:
        pass

    def on_final_reading(self, phase: Phase, mbps: float) -> None:
        pass

    def on_phase_error(self, phase: Phase, message: str) -> None:
        pass


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class SpeedTestRunner:
    """
    Drives a :class:`TestSession` through its phases.

    Ping is measured once per session whatever the mode; download runs for
    ``full`` and ``download``; upload for ``full`` and ``upload``.  The first
    phase failure ends the session as ``FAILED`` and no later phase starts.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        sink: Optional[ResultSink] = None,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ) -> None:
        self.endpoint = endpoint
        self.sink = sink or ResultSink()
        self.read_timeout = read_timeout

    def _set_state(self, session: TestSession, state: SessionState) -> None:
        session.state = state
        logger.debug("Session state -> %s", state.value)
        self.sink.on_state_change(state)

    def _reading_handler(self, phase: Phase):
        def _handle(reading: Reading) -> None:
            if reading.kind is ReadingKind.LIVE:
                self.sink.on_live_reading(phase, reading.mbps)
            else:
                self.sink.on_final_reading(phase, reading.mbps)
        return _handle

    async def run(self, session: TestSession) -> TestSession:
        if session.state is not SessionState.IDLE:
            raise SessionStateError(
                f"Session already {session.state.value}; start a new session instead"
            )

        plan = session.plan
        self._set_state(session, SessionState.RUNNING)
        logger.info("Starting %s test, %d bytes", plan.mode.value, plan.payload_bytes)

        phase = Phase.PING
        try:
            self.sink.on_phase_start(phase)
            latency = await LatencyTester(read_timeout=self.read_timeout).test(self.endpoint)
            session.ping_ms = latency.latency_ms
            self.sink.on_ping_result(latency.latency_ms)

            if plan.mode.runs_download:
                phase = Phase.DOWNLOAD
                self.sink.on_phase_start(phase)
                dl = DownloadTester(plan.payload_bytes, read_timeout=self.read_timeout)
                session.download_series = RateSeries(phase.value)
                dl.series = session.download_series
                dl.on_reading = self._reading_handler(phase)
                await dl.test(self.endpoint)

            if plan.mode.runs_upload:
                phase = Phase.UPLOAD
                self.sink.on_phase_start(phase)
                ul = UploadTester(plan.payload_bytes, read_timeout=self.read_timeout)
                session.upload_series = RateSeries(phase.value)
                ul.series = session.upload_series
                ul.on_reading = self._reading_handler(phase)
                await ul.test(self.endpoint)

        except PhaseError as exc:
            logger.error("%s phase failed: %s", phase.value.capitalize(), exc.message)
            session.error = exc.message
            session.failed_phase = phase
            self.sink.on_phase_error(phase, exc.message)
            self._set_state(session, SessionState.FAILED)
            return session

        self._set_state(session, SessionState.DONE)
        return session
