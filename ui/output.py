"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from netdiag.api import ClientInfo
from netdiag.reachability import ReachabilityRow
from netdiag.session import TestSession


def session_to_dict(
    session: TestSession,
    client_info: Optional[ClientInfo] = None,
    server_url: str = "",
) -> Dict[str, Any]:
    """Build a JSON-serialisable dict for one speed-test session."""
    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "server": server_url,
        **session.to_dict(),
    }
    if client_info is not None:
        result["client"] = client_info.to_dict()
    return result


def reachability_to_dict(rows: Dict[str, ReachabilityRow]) -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "domains": [row.to_dict() for row in rows.values()],
    }


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text helpers
# ---------------------------------------------------------------------------

def format_text_result(session: TestSession) -> str:
    lines = []
    if session.ping_ms is not None:
        lines.append(f"Ping: {session.ping_ms:.0f} ms")
    if session.download_mbps is not None:
        lines.append(f"Download: {session.download_mbps:.2f} Mbps")
    if session.upload_mbps is not None:
        lines.append(f"Upload: {session.upload_mbps:.2f} Mbps")
    if session.error:
        lines.append(f"Error: {session.error}")
    return "\n".join(lines)
