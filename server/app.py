"""
Diagnostic server -- the endpoints the measurement client talks to.

Routes::

    GET  /           landing page
    GET  /ip         {"ip", "country", "city"} as seen by the server
    GET  /ping       204, empty body
    GET  /download   ?size=N -> min(N, 100 MiB) filler bytes, streamed
    POST /upload     body read and discarded -> "OK"
    OPTIONS (API)    CORS pre-flight

Handlers keep no state between requests.
"""
from __future__ import annotations

import logging

from aiohttp import web
from aiohttp.http_exceptions import HttpProcessingError

from netdiag.constants import (
    DEFAULT_PAYLOAD,
    DOWNLOAD_CHUNK_SIZE,
    MAX_DOWNLOAD_BYTES,
    NOT_AVAILABLE,
    UPLOAD_READ_CHUNK,
)

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

API_ROUTES = ("/ip", "/ping", "/download", "/upload")

_CORS_KEY = web.AppKey("cors", bool)

_FILLER = b"a" * DOWNLOAD_CHUNK_SIZE

INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>Network Diagnostic Tool</title></head>
<body>
<h1>Network Diagnostic Tool</h1>
<p>Measurement endpoints: <code>/ping</code>, <code>/download?size=N</code>,
<code>/upload</code>, <code>/ip</code>.</p>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def download_size(raw) -> int:  # noqa: ANN001
    """Byte count to send for a ``size`` query value, capped at 100 MiB."""
    if raw is None or raw == "":
        requested = DEFAULT_PAYLOAD
    else:
        requested = int(raw)
    return max(0, min(requested, MAX_DOWNLOAD_BYTES))


def client_address(request: web.Request) -> str:
    ip = request.headers.get("CF-Connecting-IP")
    if not ip:
        forwarded = request.headers.get("X-Forwarded-For", "")
        ip = forwarded.split(",")[0].strip()
    return ip or request.remote or NOT_AVAILABLE


def _cors(request: web.Request) -> dict:
    return dict(CORS_HEADERS) if request.app[_CORS_KEY] else {}


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def handle_index(request: web.Request) -> web.Response:
    return web.Response(text=INDEX_HTML, content_type="text/html", charset="utf-8")


async def handle_ip(request: web.Request) -> web.Response:
    return web.json_response({
        "ip": client_address(request),
        "country": request.headers.get("CF-IPCountry") or NOT_AVAILABLE,
        "city": request.headers.get("CF-IPCity") or NOT_AVAILABLE,
    })


async def handle_ping(request: web.Request) -> web.Response:
    return web.Response(status=204)


async def handle_download(request: web.Request) -> web.StreamResponse:
    try:
        size = download_size(request.query.get("size"))
    except ValueError:
        raise web.HTTPBadRequest(text="Invalid size")

    response = web.StreamResponse(
        status=200,
        headers={**_cors(request), "Content-Type": "application/octet-stream"},
    )
    response.content_length = size
    await response.prepare(request)

    sent = 0
    while sent < size:
        chunk = _FILLER[: min(DOWNLOAD_CHUNK_SIZE, size - sent)]
        await response.write(chunk)
        sent += len(chunk)

    await response.write_eof()
    logger.debug("Download: sent %d bytes to %s", sent, request.remote)
    return response


async def handle_upload(request: web.Request) -> web.Response:
    received = 0
    try:
        async for chunk in request.content.iter_chunked(UPLOAD_READ_CHUNK):
            received += len(chunk)
    except (ConnectionError, OSError, HttpProcessingError) as exc:
        logger.warning("Upload read failed after %d bytes: %s", received, exc)
        return web.Response(status=400, text="Upload failed")

    logger.debug("Upload: discarded %d bytes from %s", received, request.remote)
    return web.Response(text="OK")


async def handle_options(request: web.Request) -> web.Response:
    return web.Response(status=204)


# ---------------------------------------------------------------------------
# Middleware / app factory
# ---------------------------------------------------------------------------

@web.middleware
async def cors_middleware(request: web.Request, handler):  # noqa: ANN001
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(_cors(request))
        raise
    if not response.prepared:
        response.headers.update(_cors(request))
    return response


@web.middleware
async def not_found_middleware(request: web.Request, handler):  # noqa: ANN001
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return web.Response(status=404, text="Not Found", headers=_cors(request))


def create_app(cors: bool = True) -> web.Application:
    """Build the diagnostic server application."""
    app = web.Application(middlewares=[not_found_middleware, cors_middleware])
    app[_CORS_KEY] = cors

    app.router.add_get("/", handle_index)
    app.router.add_get("/ip", handle_ip)
    app.router.add_get("/ping", handle_ping)
    app.router.add_get("/download", handle_download)
    app.router.add_post("/upload", handle_upload)
    for path in API_ROUTES:
        app.router.add_route("OPTIONS", path, handle_options)

    return app


def run_server(host: str, port: int, cors: bool = True) -> None:
    logger.info("Serving diagnostic endpoints on http://%s:%d", host, port)
    web.run_app(create_app(cors=cors), host=host, port=port, access_log=logger)
