"""
Upload speed test module.

POSTs a synthetic body of zero-valued bytes.  The body is an async generator:
every slice the transport accepts becomes a progress event carrying the
cumulative bytes sent.  Events travel through an ``asyncio.Queue`` to a
consumer task that feeds the rate estimator, so the producer never blocks on
the sink.  The first progress event marks the start of the transfer.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Optional, Tuple

import aiohttp

from .api import Endpoint, create_session
from .constants import DEFAULT_PAYLOAD, DEFAULT_READ_TIMEOUT, MIN_ELAPSED, UPLOAD_CHUNK_SIZE
from .errors import UploadError
from .stats import RateEstimator, RateSeries, Reading, ReadingKind, calculate_mbps

logger = logging.getLogger(__name__)

_ZEROS = bytes(UPLOAD_CHUNK_SIZE)

Progress = Tuple[int, float]   # (cumulative bytes sent, perf_counter timestamp)


@dataclass
class UploadResult:
    """Upload test result."""

    bytes_total: int = 0
    duration_ms: float = 0.0
    progress_events: int = 0
    series: RateSeries = field(default_factory=lambda: RateSeries("upload"))

    @property
    def speed_mbps(self) -> float:
        avg = self.series.average
        return avg if avg is not None else 0.0


async def zero_body(size: int, progress: "asyncio.Queue[Optional[Progress]]",
                    chunk_size: int = UPLOAD_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield *size* zero bytes, reporting each slice once the transport took it."""
    zeros = _ZEROS if chunk_size == UPLOAD_CHUNK_SIZE else bytes(chunk_size)
    sent = 0
    while sent < size:
        chunk = zeros[: min(chunk_size, size - sent)]
        yield chunk
        sent += len(chunk)
        progress.put_nowait((sent, time.perf_counter()))


class UploadTester:
    """Single-request upload speed tester."""

    HEADERS = {"Content-Type": "application/octet-stream"}

    def __init__(
        self,
        payload_bytes: int = DEFAULT_PAYLOAD,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ) -> None:
        self.payload_bytes = payload_bytes
        self.read_timeout = read_timeout
        self.on_reading: Optional[Callable[[Reading], None]] = None
        self.series: Optional[RateSeries] = None

    def _emit(self, result: UploadResult, reading: Reading) -> None:
        result.series.append(reading)
        if self.on_reading:
            self.on_reading(reading)

    async def test(self, endpoint: Endpoint) -> UploadResult:
        result = UploadResult(bytes_total=self.payload_bytes)
        if self.series is not None:
            result.series = self.series
        progress: "asyncio.Queue[Optional[Progress]]" = asyncio.Queue()
        estimator: Optional[RateEstimator] = None

        async def _consume() -> None:
            nonlocal estimator
            while True:
                event = await progress.get()
                if event is None:
                    break
                loaded, now = event
                result.progress_events += 1
                if estimator is None:
                    estimator = RateEstimator(now)
                live = estimator.observe(loaded, now)
                if live is not None:
                    logger.debug("Upload live: %.2f Mbps", live.mbps)
                    self._emit(result, live)

        consumer = asyncio.create_task(_consume())
        headers = {**self.HEADERS, "Content-Length": str(self.payload_bytes)}

        try:
            async with create_session(self.read_timeout) as session:
                async with session.post(
                    endpoint.upload_url,
                    data=zero_body(self.payload_bytes, progress),
                    headers=headers,
                ) as resp:
                    await resp.read()
                    status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)
            raise UploadError("Upload network error.") from exc

        end = time.perf_counter()
        progress.put_nowait(None)
        await consumer

        if not 200 <= status < 300:
            raise UploadError(f"Upload failed: {status}")

        if estimator is not None:
            result.duration_ms = (end - estimator.start) * 1000
            avg = estimator.finish(end, self.payload_bytes)
        else:
            logger.warning("Upload finished without progress events; using elapsed floor")
            result.duration_ms = MIN_ELAPSED * 1000
            avg = Reading(calculate_mbps(self.payload_bytes, MIN_ELAPSED), ReadingKind.AVG)
        self._emit(result, avg)

        logger.info(
            "Upload: %d bytes in %.0f ms, %.2f Mbps",
            self.payload_bytes, result.duration_ms, result.speed_mbps,
        )
        return result
