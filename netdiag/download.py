"""
Download speed test module.

Issues one streaming GET for the requested payload and reads the body in
whatever chunk sizes the transport delivers.  Only the running byte count is
tracked; a :class:`~netdiag.stats.RateEstimator` turns it into Live readings
(at most one per 250 ms) and a final Avg reading over the whole transfer.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import aiohttp

from .api import Endpoint, create_session
from .constants import DEFAULT_PAYLOAD, DEFAULT_READ_TIMEOUT
from .errors import DownloadError
from .stats import RateEstimator, RateSeries, Reading

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class DownloadResult:
    """Download test result."""

    requested_bytes: int = 0
    bytes_total: int = 0
    duration_ms: float = 0.0
    series: RateSeries = field(default_factory=lambda: RateSeries("download"))

    @property
    def speed_mbps(self) -> float:
        avg = self.series.average
        return avg if avg is not None else 0.0


# ---------------------------------------------------------------------------
# Tester
# ---------------------------------------------------------------------------

class DownloadTester:
    """
    Single-stream download speed tester.

    Readings are appended to the result's series (or to ``series``, when the
    caller supplies one) and, if ``on_reading`` is set, forwarded to it as
    soon as they are produced.
    """

    def __init__(
        self,
        payload_bytes: int = DEFAULT_PAYLOAD,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ) -> None:
        self.payload_bytes = payload_bytes
        self.read_timeout = read_timeout
        self.on_reading: Optional[Callable[[Reading], None]] = None
        self.series: Optional[RateSeries] = None

    def _emit(self, result: DownloadResult, reading: Reading) -> None:
        result.series.append(reading)
        if self.on_reading:
            self.on_reading(reading)

    async def test(self, endpoint: Endpoint) -> DownloadResult:
        result = DownloadResult(requested_bytes=self.payload_bytes)
        if self.series is not None:
            result.series = self.series
        params = {"size": str(self.payload_bytes)}
        received = 0

        start = time.perf_counter()
        estimator = RateEstimator(start)

        try:
            async with create_session(
                self.read_timeout, headers={"Accept-Encoding": "identity"}
            ) as session:
                async with session.get(endpoint.download_url, params=params) as resp:
                    if not 200 <= resp.status < 300:
                        raise DownloadError(f"Download failed: {resp.status}")

                    async for chunk in resp.content.iter_any():
                        received += len(chunk)
                        live = estimator.observe(received, time.perf_counter())
                        if live is not None:
                            logger.debug("Download live: %.2f Mbps", live.mbps)
                            self._emit(result, live)

        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise DownloadError(f"Download failed: {exc}") from exc

        end = time.perf_counter()
        result.bytes_total = received
        result.duration_ms = (end - start) * 1000
        self._emit(result, estimator.finish(end, received))

        logger.info(
            "Download: %d bytes in %.0f ms, %.2f Mbps",
            received, result.duration_ms, result.speed_mbps,
        )
        return result
