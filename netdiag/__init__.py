"""Network diagnostic client library -- sampling, estimation, and orchestration."""

from .api import ClientInfo, DiagnosticAPI, Endpoint
from .download import DownloadResult, DownloadTester
from .errors import (
    APIError,
    DiagnosticError,
    DownloadError,
    PhaseError,
    PingError,
    SessionStateError,
    UploadError,
)
from .latency import LatencyResult, LatencyTester
from .reachability import Column, DohAnswer, ReachabilityProber, ReachabilityRow
from .session import (
    Phase,
    ResultSink,
    SessionState,
    SpeedTestRunner,
    TestMode,
    TestPlan,
    TestSession,
)
from .stats import (
    RateEstimator,
    RateSeries,
    Reading,
    ReadingKind,
    Sample,
    best_latency,
    calculate_mbps,
    format_latency,
    format_speed,
)
from .upload import UploadResult, UploadTester

__all__ = [
    "APIError",
    "ClientInfo",
    "Column",
    "DiagnosticAPI",
    "DiagnosticError",
    "DohAnswer",
    "DownloadError",
    "DownloadResult",
    "DownloadTester",
    "Endpoint",
    "LatencyResult",
    "LatencyTester",
    "Phase",
    "PhaseError",
    "PingError",
    "RateEstimator",
    "RateSeries",
    "ReachabilityProber",
    "ReachabilityRow",
    "Reading",
    "ReadingKind",
    "ResultSink",
    "Sample",
    "SessionState",
    "SessionStateError",
    "SpeedTestRunner",
    "TestMode",
    "TestPlan",
    "TestSession",
    "UploadError",
    "UploadResult",
    "UploadTester",
    "best_latency",
    "calculate_mbps",
    "format_latency",
    "format_speed",
]
