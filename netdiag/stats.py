"""
Network measurement statistics.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test: callers pass
timestamps in explicitly (seconds, from ``time.perf_counter``).
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .constants import LIVE_INTERVAL, MIN_ELAPSED


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Sample:
    """One timed network event."""

    bytes_transferred: int
    elapsed_ms: float


class ReadingKind(enum.Enum):
    LIVE = "Live"
    AVG = "Avg"


@dataclass(frozen=True)
class Reading:
    """A single throughput figure reported to the result sink."""

    mbps: float
    kind: ReadingKind


@dataclass
class RateSeries:
    """Running history of throughput readings for one direction."""

    direction: str
    readings: List[Reading] = field(default_factory=list)

    def append(self, reading: Reading) -> None:
        self.readings.append(reading)

    @property
    def live(self) -> List[float]:
        return [r.mbps for r in self.readings if r.kind is ReadingKind.LIVE]

    @property
    def average(self) -> Optional[float]:
        for r in reversed(self.readings):
            if r.kind is ReadingKind.AVG:
                return r.mbps
        return None

    def to_dict(self) -> dict:
        return {
            "direction": self.direction,
            "average_mbps": round(self.average, 2) if self.average is not None else None,
            "live_mbps": [round(v, 2) for v in self.live],
        }


# ---------------------------------------------------------------------------
# Estimators
# ---------------------------------------------------------------------------

class RateEstimator:
    """
    Converts (cumulative bytes, timestamp) observations into Mbps readings.

    A Live reading is produced only once more than ``interval`` seconds have
    passed since the previous one (or since *start*), and covers exactly the
    bytes seen in that slice.  :meth:`finish` produces the Avg reading over
    the whole transfer.
    """

    def __init__(self, start: float, interval: float = LIVE_INTERVAL) -> None:
        self.start = start
        self.interval = interval
        self.last_update = start
        self.last_bytes = 0
        self.total_bytes = 0

    def observe(self, total_bytes: int, now: float) -> Optional[Reading]:
        self.total_bytes = total_bytes
        elapsed = now - self.last_update
        if elapsed <= self.interval:
            return None

        mbps = calculate_mbps(total_bytes - self.last_bytes, elapsed)
        self.last_update = now
        self.last_bytes = total_bytes
        return Reading(mbps, ReadingKind.LIVE)

    def finish(self, now: float, total_bytes: Optional[int] = None) -> Reading:
        if total_bytes is None:
            total_bytes = self.total_bytes
        elapsed = max(now - self.start, MIN_ELAPSED)
        return Reading(calculate_mbps(total_bytes, elapsed), ReadingKind.AVG)


def best_latency(samples: Sequence[float]) -> float:
    """Best-case round trip: the minimum, never the mean."""
    if not samples:
        raise ValueError("no latency samples collected")
    return min(samples)


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def calculate_mbps(byte_count: int, seconds: float) -> float:
    """Megabits per second for *byte_count* bytes moved in *seconds*."""
    if seconds <= 0:
        return 0.0
    return (byte_count * 8) / (seconds * 1_000_000)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
