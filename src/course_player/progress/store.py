"""Persistence of lesson watch progress."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from course_player.database import LessonProgress, get_db
from course_player.logging.config import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[..., Optional[Awaitable[None]]]


@dataclass(frozen=True)
class ProgressRecord:
    """Saved progress for a (user, lesson) pair."""

    user_id: str
    lesson_id: str
    watch_time: float
    completed: bool = False
    course_id: Optional[str] = None
    updated_at: Optional[datetime] = None


class ProgressStore(ABC):
    """Abstract base class for progress persistence."""

    @abstractmethod
    async def read_progress(self, user_id: str, lesson_id: str) -> Optional[ProgressRecord]:
        """
        Read saved progress.

        Returns:
            The record, or None if nothing was saved yet
        """
        pass

    @abstractmethod
    async def upsert_progress(
        self,
        user_id: str,
        lesson_id: str,
        course_id: Optional[str],
        watch_time: float,
        completed: bool = False,
    ) -> ProgressRecord:
        """Create or update the progress record keyed by (user, lesson)."""
        pass


class SqlProgressStore(ProgressStore):
    """Progress store backed by the lesson_progress table."""

    async def read_progress(self, user_id: str, lesson_id: str) -> Optional[ProgressRecord]:
        return await asyncio.to_thread(self._read, user_id, lesson_id)

    async def upsert_progress(
        self,
        user_id: str,
        lesson_id: str,
        course_id: Optional[str],
        watch_time: float,
        completed: bool = False,
    ) -> ProgressRecord:
        return await asyncio.to_thread(
            self._upsert, user_id, lesson_id, course_id, watch_time, completed
        )

    def _read(self, user_id: str, lesson_id: str) -> Optional[ProgressRecord]:
        with get_db() as db:
            row = (
                db.query(LessonProgress)
                .filter(LessonProgress.user_id == user_id, LessonProgress.lesson_id == lesson_id)
                .first()
            )
            return _to_record(row) if row else None

    def _upsert(
        self,
        user_id: str,
        lesson_id: str,
        course_id: Optional[str],
        watch_time: float,
        completed: bool,
    ) -> ProgressRecord:
        watch_time = max(0.0, float(watch_time))

        with get_db() as db:
            row = (
                db.query(LessonProgress)
                .filter(LessonProgress.user_id == user_id, LessonProgress.lesson_id == lesson_id)
                .first()
            )

            if row:
                row.watch_time = watch_time
                # Completion is sticky
                row.completed = row.completed or completed
                if course_id:
                    row.course_id = course_id
                row.updated_at = datetime.utcnow()
                logger.debug(f"Updated progress {user_id}/{lesson_id}: {watch_time:.1f}s")
            else:
                row = LessonProgress(
                    user_id=user_id,
                    lesson_id=lesson_id,
                    course_id=course_id,
                    watch_time=watch_time,
                    completed=completed,
                )
                db.add(row)
                logger.debug(f"Created progress {user_id}/{lesson_id}: {watch_time:.1f}s")

            db.flush()
            return _to_record(row)


def _to_record(row: LessonProgress) -> ProgressRecord:
    return ProgressRecord(
        user_id=row.user_id,
        lesson_id=row.lesson_id,
        watch_time=row.watch_time,
        completed=row.completed,
        course_id=row.course_id,
        updated_at=row.updated_at,
    )


def progress_callback(
    store: ProgressStore,
    user_id: str,
    lesson_id: str,
    course_id: Optional[str] = None,
) -> Callable[..., Awaitable[None]]:
    """
    Build the on_progress callback a page hands to the player.

    Write failures are logged and dropped; the player reports again on its
    next throttle window.

    Args:
        store: Progress store to write to
        user_id: Viewer
        lesson_id: Lesson being watched
        course_id: Course the lesson belongs to

    Returns:
        Coroutine function taking (time, completed=False)
    """

    async def on_progress(time: float, completed: bool = False) -> None:
        try:
            await store.upsert_progress(
                user_id=user_id,
                lesson_id=lesson_id,
                course_id=course_id,
                watch_time=time,
                completed=completed,
            )
        except Exception as e:
            logger.warning(f"Failed to save progress for {user_id}/{lesson_id}: {e}")

    return on_progress
