"""Playback state machine for a single mounted video player."""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional, Set

from course_player.config import Settings, get_settings
from course_player.exceptions import PlaybackError, PlayerError, ResolutionError
from course_player.logging.config import get_logger
from course_player.playback.players import MediaEngine, MediaEvent
from course_player.playback.reporter import ProgressReporter
from course_player.playback.resolver import MediaSourceResolver
from course_player.playback.session import LoadingPhase, PlaybackSession, PlayerOptions
from course_player.playback.timers import Timers
from course_player.playback.visibility import VisibilityCoordinator
from course_player.progress import ProgressStore

logger = get_logger(__name__)

CONTROLS_TIMER = "hide-controls"
POINTER_THROTTLE_SECONDS = 0.1


class PlaybackController:
    """
    Drives a media engine through the loading lifecycle of one video.

    Phases: initializing -> fetching -> buffering -> ready, with error
    reachable from any phase. Only resolution and engine errors are put in
    front of the user; autoplay, fullscreen and progress failures are logged
    and absorbed.

    Usage:
        async with PlaybackController(options, engine, resolver) as player:
            await player.toggle_play()
    """

    def __init__(
        self,
        options: PlayerOptions,
        engine: MediaEngine,
        resolver: MediaSourceResolver,
        settings: Optional[Settings] = None,
        progress_store: Optional[ProgressStore] = None,
    ):
        """
        Initialize the controller.

        Args:
            options: Source reference, tracking ids and callbacks from the page
            engine: Media engine owned exclusively by this controller
            resolver: Turns the source reference into a URL
            settings: Timing and threshold configuration
            progress_store: Where saved positions are read from on load
        """
        self.options = options
        self.engine = engine
        self.resolver = resolver
        self.settings = settings or get_settings()
        self.progress_store = progress_store

        self.session = PlaybackSession(
            source_reference=options.source_reference,
            volume=self.settings.default_volume,
        )
        self.reporter = ProgressReporter(
            self.session,
            options.on_progress,
            spawn=self._spawn,
            min_interval=self.settings.progress_min_interval,
            min_percent=self.settings.progress_min_percent,
            resume_ceiling=self.settings.resume_ceiling,
        )
        self.visibility = VisibilityCoordinator(self)
        self.timers = Timers()

        # Bumped by load() and close(); async work from an older generation is dropped
        self._generation = 0
        self._closed = False
        self._autoplay_attempted = False
        self._last_pointer_move = 0.0
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: Dict[MediaEvent, Callable[[], None]] = {
            MediaEvent.LOADED_METADATA: self._on_loaded_metadata,
            MediaEvent.CAN_PLAY: self._on_can_play,
            MediaEvent.WAITING: self._on_waiting,
            MediaEvent.PLAYING: self._on_playing,
            MediaEvent.PLAY: self._on_play,
            MediaEvent.PAUSE: self._on_pause,
            MediaEvent.ERROR: self._on_error,
            MediaEvent.TIME_UPDATE: self._on_time_update,
            MediaEvent.ENDED: self._on_ended,
            MediaEvent.FULLSCREEN_CHANGE: self._on_fullscreen_change,
        }
        for event, handler in self._listeners.items():
            self.engine.on(event, handler)

    async def __aenter__(self) -> "PlaybackController":
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def phase(self) -> LoadingPhase:
        return self.session.loading_phase

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_playing(self) -> bool:
        """Whether the engine is actually running, as opposed to the UI flag."""
        return not self.engine.paused

    # Lifecycle

    async def load(self) -> None:
        """Resolve the source reference and hand the URL to the engine."""
        if self._closed:
            raise PlayerError("Player is closed")

        self._generation += 1
        generation = self._generation
        self._autoplay_attempted = False

        if not self.options.source_reference:
            self._fail(ResolutionError("No video URL provided"))
            return

        self.session.set_phase(LoadingPhase.FETCHING)
        logger.info(f"Resolving video source: {self.options.source_reference}")

        try:
            url = await asyncio.wait_for(
                self.resolver.resolve(
                    self.options.source_reference,
                    is_public_asset=self.options.is_public_asset,
                ),
                timeout=self.settings.resolution_timeout,
            )
        except asyncio.TimeoutError:
            if self._is_current(generation):
                self._fail(
                    ResolutionError(
                        f"Timed out preparing video after {self.settings.resolution_timeout:g}s"
                    )
                )
            return
        except ResolutionError as e:
            if self._is_current(generation):
                self._fail(e)
            return
        except Exception as e:
            logger.error(f"Unexpected error resolving video: {e}", exc_info=True)
            if self._is_current(generation):
                self._fail(ResolutionError(f"Error loading video: {e}"))
            return

        if not self._is_current(generation):
            logger.debug("Discarding resolved URL for a stale load")
            return

        self.session.resolved_url = url
        self.session.set_phase(LoadingPhase.BUFFERING)
        self.engine.load(url)
        self.engine.volume = self.session.volume

    async def retry(self) -> None:
        """Clear the error and resolve the source again from scratch."""
        logger.info("Retrying video load")
        self.session.error = None
        self.session.resolved_url = None
        self.session.is_playing = False
        self.session.current_time = 0.0
        self.session.set_phase(LoadingPhase.FETCHING)
        self.reporter.reset_restore()
        await self.load()

    def close(self) -> None:
        """Tear down timers, engine listeners and background work."""
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self.session.was_playing_before_hidden = False

        self.timers.cancel_all()
        for event, handler in self._listeners.items():
            self.engine.off(event, handler)
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        logger.debug(f"Player closed: {self.options.source_reference}")

    async def settle(self) -> None:
        """Wait for background work (autoplay, progress restore, async progress writes)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # Controls

    async def toggle_play(self) -> None:
        if self.session.is_playing:
            self.pause()
            return

        self.session.is_playing = True
        try:
            await self.engine.play()
        except Exception as e:
            logger.error(f"Error playing video: {e}")

    async def play(self) -> bool:
        """
        Start the engine. Failures are logged.

        Returns:
            True if the engine accepted
        """
        try:
            await self.engine.play()
        except Exception as e:
            logger.warning(f"Could not start playback: {e}")
            return False
        self.session.is_playing = True
        return True

    def pause(self) -> None:
        self.engine.pause()
        self.session.is_playing = False

    def set_volume(self, volume: float) -> None:
        volume = min(1.0, max(0.0, float(volume)))
        self.session.volume = volume
        self.session.is_muted = volume == 0
        self.engine.volume = volume
        self.engine.muted = self.session.is_muted

    def toggle_mute(self) -> None:
        if not self.session.is_muted:
            self.session.saved_volume = self.session.volume
            self.session.volume = 0.0
            self.session.is_muted = True
        else:
            restored = self.session.saved_volume
            if not restored:
                restored = self.settings.default_volume
            self.session.volume = restored
            self.session.is_muted = False

        self.engine.muted = self.session.is_muted
        self.engine.volume = self.session.volume

    def seek(self, fraction: float) -> Optional[float]:
        """
        Jump to a fraction of the duration.

        Returns:
            The absolute position, or None when the duration is unknown
        """
        duration = self.session.duration
        if not duration:
            return None

        position = min(1.0, max(0.0, float(fraction))) * duration

        # A seek while paused is saved right away; the throttle would never see it
        if not self.session.is_playing and self.options.tracking_enabled:
            self.reporter.report_now(position)

        self.engine.seek(position)
        self.session.current_time = position
        return position

    async def toggle_full_screen(self) -> None:
        try:
            if self.engine.is_fullscreen:
                await self.engine.exit_fullscreen()
            else:
                await self.engine.request_fullscreen()
        except Exception as e:
            logger.error(f"Error attempting to toggle full-screen mode: {e}")

    def pointer_moved(self) -> None:
        """Show the controls and restart the auto-hide countdown."""
        now = time.monotonic()
        if now - self._last_pointer_move < POINTER_THROTTLE_SECONDS:
            return
        self._last_pointer_move = now

        self.session.controls_visible = True
        self._schedule_hide_controls()

    def pointer_left(self) -> None:
        if self.session.is_playing:
            self._schedule_hide_controls()

    def cancel_housekeeping(self) -> None:
        """Stop timers that only matter while the page is visible."""
        self.timers.cancel(CONTROLS_TIMER)

    def _schedule_hide_controls(self) -> None:
        if self._closed:
            return
        self.timers.schedule(
            CONTROLS_TIMER, self.settings.controls_hide_delay, self._hide_controls
        )

    def _hide_controls(self) -> None:
        if self.session.is_playing and self.session.is_tab_visible:
            self.session.controls_visible = False

    # Engine events

    def _on_loaded_metadata(self) -> None:
        self.session.duration = self.engine.duration or 0.0

        if self.progress_store and self.options.user_id and self.options.lesson_id:
            self._spawn(self._restore_position(self._generation))

    def _on_can_play(self) -> None:
        if self.session.resolved_url is None:
            return
        self.session.set_phase(LoadingPhase.READY)

        if self.options.auto_play and not self._autoplay_attempted:
            self._autoplay_attempted = True
            self._spawn(self._autoplay(self._generation))

    def _on_waiting(self) -> None:
        if self.session.loading_phase is LoadingPhase.ERROR:
            return
        self.session.set_phase(LoadingPhase.BUFFERING)

    def _on_playing(self) -> None:
        if self.session.resolved_url is not None:
            self.session.set_phase(LoadingPhase.READY)
        self.session.is_playing = True

    def _on_play(self) -> None:
        self.session.is_playing = True

    def _on_pause(self) -> None:
        self.session.is_playing = False

    def _on_error(self) -> None:
        message = self.engine.error_message or "Unknown error"
        logger.error(f"Video error: {message}")
        self._fail(PlaybackError(f"Failed to load video: {message}"))

    def _on_time_update(self) -> None:
        self.session.current_time = self.engine.current_time
        if self.options.tracking_enabled:
            self.reporter.on_time_update(self.engine.current_time, self.engine.duration)

    def _on_ended(self) -> None:
        self.session.is_playing = False
        if self.options.tracking_enabled:
            self.reporter.report_completion(self.engine.duration)

    def _on_fullscreen_change(self) -> None:
        self.session.is_full_screen = self.engine.is_fullscreen

    # Background work

    async def _autoplay(self, generation: int) -> None:
        try:
            await self.engine.play()
        except Exception as e:
            # Manual play is still possible
            logger.error(f"Error auto-playing video: {e}")
            return
        if self._is_current(generation):
            self.session.is_playing = True

    async def _restore_position(self, generation: int) -> None:
        position = await self.reporter.saved_position(
            self.progress_store,
            self.options.user_id,
            self.options.lesson_id,
            self.session.duration,
        )
        if position is None or not self._is_current(generation):
            return

        logger.info(f"Resuming {self.options.lesson_id} at {position:.1f}s")
        self.engine.seek(position)
        self.session.current_time = position

    def _spawn(self, coro: Awaitable[None]) -> None:
        if self._closed:
            coro.close()
            return
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _fail(self, error: PlayerError) -> None:
        self.session.fail(str(error))
        logger.warning(f"Player error: {self.session.error}")
