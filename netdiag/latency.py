"""
HTTP round-trip latency measurement.

Protocol flow::

    1. GET {base}/ping?nocache={ms}      -> 204, empty body
    2. Time from issue to response headers is one sample
    3. Repeat up to PING_ATTEMPTS times, PING_INTERVAL apart

A failed attempt is logged and skipped; the batch only fails when no
attempt succeeded.  The reported latency is the best (minimum) sample.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import aiohttp

from .api import Endpoint, cache_buster, create_session
from .constants import DEFAULT_READ_TIMEOUT, PING_ATTEMPTS, PING_INTERVAL
from .errors import PingError
from .stats import Sample, best_latency

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LatencyResult:
    """Aggregated latency data for one ping batch."""

    pings: List[float] = field(default_factory=list)
    attempts: int = 0
    latency_ms: float = 0.0     # best (min) latency

    def calculate(self) -> None:
        if self.pings:
            self.latency_ms = best_latency(self.pings)

    @property
    def failures(self) -> int:
        return self.attempts - len(self.pings)


# ---------------------------------------------------------------------------
# Tester
# ---------------------------------------------------------------------------

class LatencyTester:
    """Measure round-trip latency to the diagnostic server's ping route."""

    def __init__(
        self,
        attempts: int = PING_ATTEMPTS,
        interval: float = PING_INTERVAL,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ) -> None:
        self.attempts = attempts
        self.interval = interval
        self.read_timeout = read_timeout

    async def test(self, endpoint: Endpoint) -> LatencyResult:
        result = LatencyResult()

        async with create_session(self.read_timeout) as session:
            for i in range(self.attempts):
                if i:
                    await asyncio.sleep(self.interval)
                result.attempts += 1
                sample = await self.ping_once(session, endpoint)
                if sample is not None:
                    result.pings.append(sample.elapsed_ms)

        if not result.pings:
            logger.error("All %d ping attempts failed", result.attempts)
            raise PingError("Ping test failed.")

        result.calculate()
        logger.info(
            "Ping: best %.1f ms over %d/%d attempts",
            result.latency_ms, len(result.pings), result.attempts,
        )
        return result

    async def ping_once(
        self,
        session: aiohttp.ClientSession,
        endpoint: Endpoint,
    ) -> Optional[Sample]:
        """One timed round trip, or ``None`` if the attempt failed."""
        params = {"nocache": cache_buster()}
        start = time.perf_counter()
        try:
            async with session.get(endpoint.ping_url, params=params) as resp:
                elapsed_ms = (time.perf_counter() - start) * 1000
                if not 200 <= resp.status < 300:
                    logger.warning("Ping request failed: HTTP %d", resp.status)
                    return None
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.warning("Ping request failed: %s", exc)
            return None

        return Sample(bytes_transferred=0, elapsed_ms=elapsed_ms)
