"""
Diagnostic server API client.

Knows the route layout of the diagnostic server and fetches client
information.  All HTTP work goes through a single ``aiohttp.ClientSession``
managed via async-context-manager protocol
(``async with DiagnosticAPI(endpoint) as api: ...``).
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_BASE_URL,
    DEFAULT_READ_TIMEOUT,
    NOT_AVAILABLE,
)
from .errors import APIError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Endpoint:
    """A diagnostic server, addressed by its base URL."""

    base_url: str = DEFAULT_BASE_URL

    @classmethod
    def from_url(cls, url: str) -> Endpoint:
        url = url.strip()
        if not url.startswith(("http://", "https://")):
            url = "http://" + url
        return cls(base_url=url.rstrip("/"))

    # -- Derived URLs -------------------------------------------------------

    @property
    def ping_url(self) -> str:
        return f"{self.base_url}/ping"

    @property
    def download_url(self) -> str:
        return f"{self.base_url}/download"

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}/upload"

    @property
    def ip_url(self) -> str:
        return f"{self.base_url}/ip"


@dataclass
class ClientInfo:
    """What the server sees of this client."""

    ip: str = NOT_AVAILABLE
    country: str = NOT_AVAILABLE
    city: str = NOT_AVAILABLE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ClientInfo:
        return cls(
            ip=data.get("ip") or NOT_AVAILABLE,
            country=data.get("country") or NOT_AVAILABLE,
            city=data.get("city") or NOT_AVAILABLE,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"ip": self.ip, "country": self.country, "city": self.city}

    @property
    def country_flag(self) -> str:
        """Regional-indicator emoji for a two-letter country code."""
        cc = self.country
        if not cc or len(cc) != 2 or not cc.isalpha():
            return ""
        return "".join(chr(127397 + ord(ch)) for ch in cc.upper())


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------

def client_timeout(read_timeout: float = DEFAULT_READ_TIMEOUT) -> aiohttp.ClientTimeout:
    """No overall deadline; a stalled connect or read fails the request."""
    return aiohttp.ClientTimeout(total=None, connect=CONNECT_TIMEOUT, sock_read=read_timeout)


def create_session(
    read_timeout: float = DEFAULT_READ_TIMEOUT,
    headers: Optional[Dict[str, str]] = None,
) -> aiohttp.ClientSession:
    connector = aiohttp.TCPConnector(limit=1, force_close=False, enable_cleanup_closed=True)
    return aiohttp.ClientSession(
        headers={**COMMON_HEADERS, **(headers or {})},
        connector=connector,
        timeout=client_timeout(read_timeout),
    )


def cache_buster() -> str:
    """Millisecond wall-clock stamp for cache-defeating query parameters."""
    return str(int(time.time() * 1000))


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

class DiagnosticAPI:
    """Async context-manager wrapping the diagnostic server's info route."""

    def __init__(self, endpoint: Endpoint, read_timeout: float = DEFAULT_READ_TIMEOUT) -> None:
        self.endpoint = endpoint
        self.read_timeout = read_timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self.client_info: Optional[ClientInfo] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> DiagnosticAPI:
        self._session = create_session(self.read_timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "DiagnosticAPI must be used as an async context manager "
                "(async with DiagnosticAPI(endpoint) as api: ...)"
            )
        return self._session

    # -- Public methods -----------------------------------------------------

    async def get_client_info(self) -> ClientInfo:
        """Ask the server for this client's public IP, country and city."""
        session = self._ensure_session()

        try:
            async with session.get(self.endpoint.ip_url) as resp:
                if resp.status != 200:
                    raise APIError(f"IP lookup failed: {resp.status}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise APIError(f"IP lookup failed: {exc}") from exc

        if not isinstance(data, dict):
            raise APIError("IP lookup returned an unexpected payload")

        self.client_info = ClientInfo.from_dict(data)
        logger.debug("Client info: %s", self.client_info)
        return self.client_info
