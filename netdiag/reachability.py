"""
Reachability probing of well-known third-party domains.

For every domain, three cells are measured independently and concurrently
with every other cell of every other domain:

* ``cloudflare`` -- A-record lookup through Cloudflare's DNS-over-HTTPS JSON API
* ``google``     -- the same lookup through Google's DoH JSON API
* ``http``       -- average opaque HTTP latency to a small well-known resource

Each cell is reported through ``on_cell`` the moment it settles; a slow or
broken resolver never holds back another column or another domain.  A failed
cell holds the ``"Error"`` marker, never a synthetic latency.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import random
import statistics
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Mapping, Optional, Union

import aiohttp

from .api import client_timeout
from .constants import (
    CELL_ERROR,
    COMMON_HEADERS,
    DEFAULT_READ_TIMEOUT,
    DOH_HEADERS,
    DOH_PROVIDERS,
    DOMAINS,
    HTTP_PING_COUNT,
    HTTP_PING_INTERVAL,
    HTTP_PING_TARGETS,
    NOT_AVAILABLE,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

class Column(enum.Enum):
    CLOUDFLARE = "cloudflare"
    GOOGLE = "google"
    HTTP = "http"


@dataclass(frozen=True)
class DohAnswer:
    """A resolved address and how long the resolver took to answer."""

    ip: str
    latency_ms: float

    def to_dict(self) -> dict:
        return {"ip": self.ip, "latency_ms": round(self.latency_ms)}


DohCell = Union[DohAnswer, str, None]
LatencyCell = Union[float, str, None]
CellValue = Union[DohAnswer, float, str]


@dataclass
class ReachabilityRow:
    """One probed domain.  ``None`` means the cell is still pending."""

    domain: str
    cloudflare: DohCell = None
    google: DohCell = None
    http_latency_ms: LatencyCell = None

    def set(self, column: Column, value: CellValue) -> None:
        if column is Column.CLOUDFLARE:
            self.cloudflare = value
        elif column is Column.GOOGLE:
            self.google = value
        else:
            self.http_latency_ms = value

    def get(self, column: Column) -> Optional[CellValue]:
        if column is Column.CLOUDFLARE:
            return self.cloudflare
        if column is Column.GOOGLE:
            return self.google
        return self.http_latency_ms

    @property
    def complete(self) -> bool:
        return all(self.get(c) is not None for c in Column)

    def to_dict(self) -> dict:
        def _cell(value):
            if isinstance(value, DohAnswer):
                return value.to_dict()
            if isinstance(value, float):
                return round(value)
            return value

        return {
            "domain": self.domain,
            "cloudflare": _cell(self.cloudflare),
            "google": _cell(self.google),
            "http_latency_ms": _cell(self.http_latency_ms),
        }


def http_ping_target(domain: str, overrides: Optional[Mapping[str, str]] = None) -> str:
    """Well-known small resource for *domain*, defaulting to its favicon."""
    targets = HTTP_PING_TARGETS if overrides is None else overrides
    return targets.get(domain) or f"https://www.{domain}/favicon.ico"


# ---------------------------------------------------------------------------
# Prober
# ---------------------------------------------------------------------------

class ReachabilityProber:
    """Resolve and time a fixed list of domains, one task per table cell."""

    def __init__(
        self,
        domains: Iterable[str] = DOMAINS,
        doh_providers: Optional[Mapping[str, str]] = None,
        http_targets: Optional[Mapping[str, str]] = None,
        ping_count: int = HTTP_PING_COUNT,
        ping_interval: float = HTTP_PING_INTERVAL,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ) -> None:
        self.domains = list(domains)
        self.doh_providers = dict(DOH_PROVIDERS if doh_providers is None else doh_providers)
        self.http_targets = http_targets
        self.ping_count = ping_count
        self.ping_interval = ping_interval
        self.read_timeout = read_timeout
        self.on_cell: Optional[Callable[[str, Column, CellValue], None]] = None
        self.rows: Dict[str, ReachabilityRow] = {}

    # -- Single cells -------------------------------------------------------

    async def resolve_doh(
        self,
        session: aiohttp.ClientSession,
        domain: str,
        provider: str,
    ) -> Union[DohAnswer, str]:
        """Look up *domain*'s A record through *provider*."""
        params = {"name": domain, "type": "A"}
        headers = DOH_HEADERS.get(provider, {})
        start = time.perf_counter()
        try:
            async with session.get(
                self.doh_providers[provider], params=params, headers=headers
            ) as resp:
                if not 200 <= resp.status < 300:
                    logger.warning("%s DoH for %s: HTTP %d", provider, domain, resp.status)
                    return CELL_ERROR
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as exc:
            logger.warning("%s DoH for %s failed: %s", provider, domain, exc)
            return CELL_ERROR

        latency_ms = (time.perf_counter() - start) * 1000
        return DohAnswer(ip=_first_answer(data), latency_ms=latency_ms)

    async def http_latency(
        self,
        session: aiohttp.ClientSession,
        domain: str,
    ) -> Union[float, str]:
        """Average time-to-response over a few opaque requests."""
        target = http_ping_target(domain, self.http_targets)
        latencies = []

        for i in range(self.ping_count):
            url = f"{target}?t={int(time.time() * 1000)}+{random.random()}"
            start = time.perf_counter()
            try:
                # Opaque: neither status nor body is inspected.
                async with session.get(url, allow_redirects=False):
                    latencies.append((time.perf_counter() - start) * 1000)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
                logger.debug("HTTP ping to %s failed: %s", target, exc)
            if i < self.ping_count - 1:
                await asyncio.sleep(self.ping_interval)

        if not latencies:
            logger.warning("HTTP latency for %s: all %d attempts failed", domain, self.ping_count)
            return CELL_ERROR
        return statistics.mean(latencies)

    # -- Whole table --------------------------------------------------------

    def _report(self, domain: str, column: Column, value: CellValue) -> None:
        self.rows[domain].set(column, value)
        logger.debug("%s %s -> %s", domain, column.value, value)
        if self.on_cell:
            self.on_cell(domain, column, value)

    async def _cell(self, session: aiohttp.ClientSession, domain: str, column: Column) -> None:
        if column is Column.HTTP:
            value = await self.http_latency(session, domain)
        else:
            value = await self.resolve_doh(session, domain, column.value)
        self._report(domain, column, value)

    async def run(self) -> Dict[str, ReachabilityRow]:
        """Probe every domain; returns once every cell has settled."""
        self.rows = {d: ReachabilityRow(domain=d) for d in self.domains}
        connector = aiohttp.TCPConnector(limit=0, enable_cleanup_closed=True)

        async with aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            connector=connector,
            timeout=client_timeout(self.read_timeout),
        ) as session:
            tasks = [
                asyncio.create_task(self._cell(session, domain, column))
                for domain in self.domains
                for column in Column
            ]
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        for outcome in outcomes:
            if isinstance(outcome, Exception):
                logger.error("Reachability cell failed: %s", outcome, exc_info=outcome)

        logger.info("Reachability: probed %d domains", len(self.rows))
        return self.rows


def _first_answer(data) -> str:  # noqa: ANN001
    """``Answer[0].data`` of a DoH JSON reply, or ``"N/A"``."""
    if not isinstance(data, dict):
        return NOT_AVAILABLE
    answers = data.get("Answer") or []
    if not answers or not isinstance(answers[0], dict):
        return NOT_AVAILABLE
    return str(answers[0].get("data") or NOT_AVAILABLE)
