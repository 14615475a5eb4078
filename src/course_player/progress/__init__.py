"""Lesson progress persistence."""

from course_player.progress.store import (
    ProgressCallback,
    ProgressRecord,
    ProgressStore,
    SqlProgressStore,
    progress_callback,
)

__all__ = [
    "ProgressCallback",
    "ProgressRecord",
    "ProgressStore",
    "SqlProgressStore",
    "progress_callback",
]
