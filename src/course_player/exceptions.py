"""
Course Player exceptions.

Only ResolutionError and PlaybackError end up in a session's user-visible
error message. Everything else is logged by the controller and absorbed.
"""


class PlayerError(Exception):
    """Base class for all Course Player errors."""


# ── Collaborators ────────────────────────────────────────────────────────────

class StorageError(PlayerError):
    """The storage backend rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MediaEngineError(PlayerError):
    """The media engine refused an operation (autoplay, fullscreen, ...)."""


# ── Session errors ───────────────────────────────────────────────────────────

class ResolutionError(PlayerError):
    """No playable URL could be produced for a source reference."""


class PlaybackError(PlayerError):
    """The media engine failed after a URL was resolved."""
