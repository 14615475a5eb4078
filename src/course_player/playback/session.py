"""Playback session state and player options."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from course_player.progress import ProgressCallback


class LoadingPhase(Enum):
    """Coarse loading state of a player, used to drive the UI."""

    INITIALIZING = "initializing"
    FETCHING = "fetching"      # Resolving the video URL
    BUFFERING = "buffering"    # URL known, waiting for the engine
    READY = "ready"            # Engine can play
    ERROR = "error"


LOADING_PHASES = (LoadingPhase.INITIALIZING, LoadingPhase.FETCHING, LoadingPhase.BUFFERING)


@dataclass
class PlayerOptions:
    """What the embedding page hands to a player."""

    source_reference: str
    course_id: Optional[str] = None
    lesson_id: Optional[str] = None
    user_id: Optional[str] = None
    on_progress: Optional[ProgressCallback] = None
    is_public_asset: bool = False
    auto_play: bool = False

    @property
    def tracking_enabled(self) -> bool:
        """Progress is only tracked with a user, a lesson and a callback."""
        return bool(self.user_id and self.lesson_id and self.on_progress)


@dataclass
class PlaybackSession:
    """In-memory state of one mounted player."""

    source_reference: str
    resolved_url: Optional[str] = None
    loading_phase: LoadingPhase = LoadingPhase.INITIALIZING
    error: Optional[str] = None

    is_playing: bool = False
    is_muted: bool = False
    is_full_screen: bool = False

    current_time: float = 0.0
    duration: float = 0.0
    volume: float = 0.7

    last_reported_time: float = 0.0
    was_playing_before_hidden: bool = False

    controls_visible: bool = True
    is_tab_visible: bool = True

    saved_volume: Optional[float] = field(default=None, repr=False)

    @property
    def is_loading(self) -> bool:
        return self.loading_phase in LOADING_PHASES

    @property
    def progress_percent(self) -> float:
        if self.duration <= 0:
            return 0.0
        return min(100.0, self.current_time / self.duration * 100)

    def set_phase(self, phase: LoadingPhase) -> None:
        if phase is LoadingPhase.READY and self.resolved_url is None:
            raise ValueError("Cannot enter READY without a resolved URL")
        if phase is not LoadingPhase.ERROR:
            self.error = None
        self.loading_phase = phase

    def fail(self, message: str) -> None:
        self.error = message or "Failed to load video"
        self.loading_phase = LoadingPhase.ERROR
