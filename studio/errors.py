"""
Studio Errors - Failure categories surfaced to the UI.
"""
from typing import Optional


class StudioError(Exception):
    """Base class for recoverable client errors."""


class RemoteError(StudioError):
    """A remote store, RPC or helper endpoint call failed."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None,
                 code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body
        self.code = code


class MediaError(StudioError):
    """Capture or playback is unavailable (device missing, permission denied)."""


class AutoplayBlocked(MediaError):
    """Unmuted playback was refused; muted playback may still work."""
