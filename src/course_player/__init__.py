"""Course Player - lesson video playback and progress tracking for the course marketplace."""

__version__ = "0.1.0"
