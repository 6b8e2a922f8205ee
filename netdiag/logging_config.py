"""Logging configuration for netdiag."""

import logging
import os
import sys

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(default: str = "WARNING") -> int:
    """Configure application-wide logging on stderr.

    Respects the NETDIAG_LOG_LEVEL environment variable, falling back to
    *default*.  Returns the effective level.

    Examples:
        # Per-sample detail while a test runs
        $ NETDIAG_LOG_LEVEL=DEBUG python netdiag_cli.py

        # Server access log
        $ NETDIAG_LOG_LEVEL=INFO python netdiag_cli.py --serve
    """
    level_name = os.environ.get("NETDIAG_LOG_LEVEL", default).upper()
    level = _LEVELS.get(level_name, _LEVELS.get(default.upper(), logging.WARNING))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    logging.getLogger(__name__).debug("Logging configured: level=%s", logging.getLevelName(level))
    return level
