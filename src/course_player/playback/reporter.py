"""Throttled reporting of playback progress."""

import asyncio
import inspect
from typing import Awaitable, Callable, Optional, Set

from course_player.logging.config import get_logger
from course_player.playback.session import PlaybackSession
from course_player.progress import ProgressCallback, ProgressStore

logger = get_logger(__name__)

Spawn = Callable[[Awaitable[None]], None]


class ProgressReporter:
    """
    Decides when playback progress is worth persisting and hands it to the
    page's on_progress callback.

    A report goes out when playback moved more than min_interval seconds past
    the last report, or when the position changed by more than min_percent of
    the duration. The reporter never writes to storage itself.
    """

    def __init__(
        self,
        session: PlaybackSession,
        on_progress: Optional[ProgressCallback],
        spawn: Optional[Spawn] = None,
        min_interval: float = 5.0,
        min_percent: float = 3.0,
        resume_ceiling: float = 0.95,
    ):
        """
        Initialize the reporter.

        Args:
            session: Session whose watermark is maintained
            on_progress: Callback taking (time, completed=False); may be async
            spawn: Runs awaitables returned by the callback in the background
            min_interval: Seconds between throttled reports
            min_percent: Percent-of-duration change forcing a report
            resume_ceiling: Saved positions at or past this fraction are not resumed
        """
        self.session = session
        self.on_progress = on_progress
        self.min_interval = min_interval
        self.min_percent = min_percent
        self.resume_ceiling = resume_ceiling
        self._spawn = spawn or self._spawn_task
        self._tasks: Set[asyncio.Task] = set()
        self._restore_attempted = False

    def should_report(self, current_time: float, duration: float) -> bool:
        last = self.session.last_reported_time
        if current_time - last > self.min_interval:
            return True
        if duration and duration > 0:
            delta_percent = abs(current_time - last) / duration * 100
            return delta_percent > self.min_percent
        return False

    def on_time_update(self, current_time: float, duration: float) -> bool:
        """
        Handle a timeupdate tick.

        Returns:
            True if a report was sent
        """
        if not self.should_report(current_time, duration):
            return False
        self._report(current_time)
        return True

    def report_now(self, time: float) -> None:
        """Report immediately, ignoring the throttle."""
        self._report(time)

    def report_completion(self, duration: float) -> None:
        self._report(duration, completed=True)

    def reset_restore(self) -> None:
        """Allow one more auto-seek, for a freshly reloaded source."""
        self._restore_attempted = False

    async def saved_position(
        self,
        store: ProgressStore,
        user_id: str,
        lesson_id: str,
        duration: float,
    ) -> Optional[float]:
        """
        Look up where the viewer left off.

        Only the first call per load consults the store. A position is
        returned when it is past zero and below resume_ceiling of duration.

        Returns:
            Position to seek to, or None
        """
        if self._restore_attempted:
            return None
        self._restore_attempted = True

        try:
            record = await store.read_progress(user_id, lesson_id)
        except Exception as e:
            logger.error(f"Error loading progress for {user_id}/{lesson_id}: {e}")
            return None

        if record is None or record.watch_time <= 0:
            return None

        if not duration or record.watch_time >= duration * self.resume_ceiling:
            logger.debug(
                f"Not resuming {lesson_id}: saved {record.watch_time:.1f}s of {duration:.1f}s"
            )
            return None

        # The resumed position counts as reported
        self.session.last_reported_time = record.watch_time
        return record.watch_time

    def _report(self, time: float, completed: bool = False) -> None:
        self.session.last_reported_time = time
        if self.on_progress is None:
            return

        try:
            result = self.on_progress(time, completed) if completed else self.on_progress(time)
        except Exception as e:
            logger.warning(f"Progress callback failed at {time:.1f}s: {e}")
            return

        if inspect.isawaitable(result):
            self._spawn(self._guard(result, time))

    async def _guard(self, pending: Awaitable[None], time: float) -> None:
        try:
            await pending
        except Exception as e:
            logger.warning(f"Progress callback failed at {time:.1f}s: {e}")

    def _spawn_task(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
