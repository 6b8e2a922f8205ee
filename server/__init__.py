"""Diagnostic server -- aiohttp endpoints for ping, download, upload and IP info."""

from .app import CORS_HEADERS, create_app, download_size, run_server

__all__ = ["CORS_HEADERS", "create_app", "download_size", "run_server"]
