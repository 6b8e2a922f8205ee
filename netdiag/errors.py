"""Exception hierarchy for the diagnostic client."""
from __future__ import annotations


class DiagnosticError(Exception):
    """Base class for all netdiag errors."""


class PhaseError(DiagnosticError):
    """A whole measurement phase failed; the session cannot continue."""

    phase = "unknown"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PingError(PhaseError):
    phase = "ping"


class DownloadError(PhaseError):
    phase = "download"


class UploadError(PhaseError):
    phase = "upload"


class SessionStateError(DiagnosticError):
    """A session was started more than once."""


class APIError(DiagnosticError):
    """An auxiliary API call (such as ``/ip``) failed."""
