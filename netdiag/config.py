"""
User configuration file support.

Reads/writes ``~/.netdiag/config.json``.

Supported keys::

    base_url = "http://127.0.0.1:8787"   # diagnostic server
    mode = "full"                         # full | download | upload
    payload_bytes = 25000000              # 10/25/50/100 MB
    host = "127.0.0.1"                    # --serve bind address
    port = 8787                           # --serve port
    read_timeout = 30.0                   # seconds a read may stall
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import (
    DEFAULT_BASE_URL,
    DEFAULT_HOST,
    DEFAULT_PAYLOAD,
    DEFAULT_PORT,
    DEFAULT_READ_TIMEOUT,
)

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".netdiag")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "base_url": DEFAULT_BASE_URL,
    "mode": "full",
    "payload_bytes": DEFAULT_PAYLOAD,
    "host": DEFAULT_HOST,
    "port": DEFAULT_PORT,
    "read_timeout": DEFAULT_READ_TIMEOUT,
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, IOError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path

