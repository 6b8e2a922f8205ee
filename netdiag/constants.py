"""
Shared constants used across all netdiag modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "netdiag/1.0 (+aiohttp)"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Cache-Control": "no-cache",
}

# ---------------------------------------------------------------------------
# Server endpoint
# ---------------------------------------------------------------------------

DEFAULT_BASE_URL = "http://127.0.0.1:8787"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8787

# ---------------------------------------------------------------------------
# Payload sizes
# ---------------------------------------------------------------------------

PAYLOAD_SIZES = (10_000_000, 25_000_000, 50_000_000, 100_000_000)
DEFAULT_PAYLOAD = 25_000_000

MAX_DOWNLOAD_BYTES = 100 * 1024 * 1024   # server-side cap
DOWNLOAD_CHUNK_SIZE = 16 * 1024          # server streaming chunk
UPLOAD_CHUNK_SIZE = 64 * 1024            # client body slice
UPLOAD_READ_CHUNK = 64 * 1024            # server discard chunk

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

PING_ATTEMPTS = 5
PING_INTERVAL = 0.1              # seconds between ping attempts
LIVE_INTERVAL = 0.25             # 250 ms between Live readings
MIN_ELAPSED = 0.001              # floor for Avg readings, avoids 0-division

CONNECT_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 30.0      # stalled transfer fails its phase

# ---------------------------------------------------------------------------
# Reachability
# ---------------------------------------------------------------------------

DOMAINS = (
    # Global & US
    "google.com",
    "youtube.com",
    "facebook.com",
    "amazon.com",
    "wikipedia.org",
    # China & Global
    "baidu.com",
    "qq.com",
    "taobao.com",
    "bilibili.com",
    "tiktok.com",
)

DOH_PROVIDERS = {
    "cloudflare": "https://cloudflare-dns.com/dns-query",
    "google": "https://dns.google/resolve",
}

DOH_HEADERS = {
    "cloudflare": {"accept": "application/dns-json"},
    "google": {},
}

HTTP_PING_TARGETS = {
    "google.com": "https://www.google.com/gen_204",
    "youtube.com": "https://www.youtube.com/generate_204",
    "facebook.com": "https://www.facebook.com/images/blank.gif",
}

HTTP_PING_COUNT = 3
HTTP_PING_INTERVAL = 0.2         # seconds between HTTP latency attempts

CELL_ERROR = "Error"
NOT_AVAILABLE = "N/A"
