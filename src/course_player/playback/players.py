"""Media engine abstractions."""

from abc import ABC, abstractmethod
from collections import defaultdict
from enum import Enum
from typing import Callable, Optional

from course_player.exceptions import MediaEngineError
from course_player.logging.config import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[], None]


class MediaEvent(Enum):
    """Events a media engine emits, named after their HTML media counterparts."""

    LOADED_METADATA = "loadedmetadata"
    CAN_PLAY = "canplay"
    WAITING = "waiting"
    PLAYING = "playing"
    PLAY = "play"
    PAUSE = "pause"
    TIME_UPDATE = "timeupdate"
    ENDED = "ended"
    ERROR = "error"
    FULLSCREEN_CHANGE = "fullscreenchange"


class MediaEngine(ABC):
    """
    Abstract base class for media engines.

    The engine owns the actual decoding and output. Handlers registered with
    on() are called synchronously, in emission order.
    """

    def __init__(self):
        self._handlers: dict[MediaEvent, list[EventHandler]] = defaultdict(list)
        self.volume = 1.0
        self.muted = False

    def on(self, event: MediaEvent, handler: EventHandler) -> None:
        """Subscribe a handler to an event."""
        self._handlers[event].append(handler)

    def off(self, event: MediaEvent, handler: EventHandler) -> None:
        """Unsubscribe a handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: MediaEvent) -> None:
        """Deliver an event to its current subscribers."""
        for handler in list(self._handlers.get(event, [])):
            handler()

    def listener_count(self, event: Optional[MediaEvent] = None) -> int:
        if event is not None:
            return len(self._handlers.get(event, []))
        return sum(len(handlers) for handlers in self._handlers.values())

    @abstractmethod
    def load(self, url: str) -> None:
        """Point the engine at a new URL and start fetching it."""
        pass

    @abstractmethod
    async def play(self) -> None:
        """
        Start playback.

        Raises:
            MediaEngineError: If playback was refused
        """
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def seek(self, position: float) -> None:
        """Move the playhead to an absolute position in seconds."""
        pass

    @abstractmethod
    async def request_fullscreen(self) -> None:
        pass

    @abstractmethod
    async def exit_fullscreen(self) -> None:
        pass

    @property
    @abstractmethod
    def current_time(self) -> float:
        pass

    @property
    @abstractmethod
    def duration(self) -> float:
        pass

    @property
    @abstractmethod
    def paused(self) -> bool:
        pass

    @property
    @abstractmethod
    def is_fullscreen(self) -> bool:
        pass

    @property
    @abstractmethod
    def error_message(self) -> Optional[str]:
        pass


class SimulatedEngine(MediaEngine):
    """
    In-process media engine that plays a virtual clip.

    Nothing is decoded; the clip advances only when advance() is called.
    Used by the simulate command and by tests.
    """

    def __init__(
        self,
        duration: float = 600.0,
        allow_autoplay: bool = True,
        allow_fullscreen: bool = True,
    ):
        """
        Initialize the simulated engine.

        Args:
            duration: Clip length in seconds, reported after metadata loads
            allow_autoplay: If False, play() is refused like a blocked autoplay
            allow_fullscreen: If False, fullscreen requests are refused
        """
        super().__init__()
        self.clip_duration = duration
        self.allow_autoplay = allow_autoplay
        self.allow_fullscreen = allow_fullscreen

        self.src: Optional[str] = None
        self.seek_history: list[float] = []
        self.play_calls = 0

        self._current_time = 0.0
        self._duration = 0.0
        self._paused = True
        self._fullscreen = False
        self._error: Optional[str] = None

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def is_fullscreen(self) -> bool:
        return self._fullscreen

    @property
    def error_message(self) -> Optional[str]:
        return self._error

    def load(self, url: str) -> None:
        logger.debug(f"Simulated engine loading {url}")
        self.src = url
        self._current_time = 0.0
        self._duration = 0.0
        self._paused = True
        self._error = None

    async def play(self) -> None:
        self.play_calls += 1
        if not self.allow_autoplay:
            raise MediaEngineError("play() was blocked")
        if self._paused:
            self._paused = False
            self.emit(MediaEvent.PLAY)
            self.emit(MediaEvent.PLAYING)

    def pause(self) -> None:
        if not self._paused:
            self._paused = True
            self.emit(MediaEvent.PAUSE)

    def seek(self, position: float) -> None:
        self._current_time = max(0.0, min(position, self._duration or position))
        self.seek_history.append(self._current_time)
        self.emit(MediaEvent.TIME_UPDATE)

    async def request_fullscreen(self) -> None:
        if not self.allow_fullscreen:
            raise MediaEngineError("Fullscreen request denied")
        if not self._fullscreen:
            self._fullscreen = True
            self.emit(MediaEvent.FULLSCREEN_CHANGE)

    async def exit_fullscreen(self) -> None:
        if self._fullscreen:
            self._fullscreen = False
            self.emit(MediaEvent.FULLSCREEN_CHANGE)

    # Simulation controls

    def become_ready(self) -> None:
        """Finish loading: report metadata, then that playback can start."""
        self._duration = self.clip_duration
        self.emit(MediaEvent.LOADED_METADATA)
        self.emit(MediaEvent.CAN_PLAY)

    def stall(self) -> None:
        """Run out of buffered data."""
        self.emit(MediaEvent.WAITING)

    def resume_data(self) -> None:
        """Buffered data arrived again after a stall."""
        self.emit(MediaEvent.CAN_PLAY)
        if not self._paused:
            self.emit(MediaEvent.PLAYING)

    def fail(self, message: Optional[str] = None) -> None:
        """Report a decode or network error."""
        self._error = message
        self._paused = True
        self.emit(MediaEvent.ERROR)

    def advance(self, seconds: float, step: float = 1.0) -> None:
        """
        Play forward, emitting one timeupdate per step.

        Emits ended when the clip runs out. Does nothing while paused.
        """
        remaining = seconds
        while remaining > 0 and not self._paused:
            delta = min(step, remaining)
            remaining -= delta
            self._current_time = min(self._current_time + delta, self._duration)
            self.emit(MediaEvent.TIME_UPDATE)

            if self._duration and self._current_time >= self._duration:
                self._paused = True
                self.emit(MediaEvent.PAUSE)
                self.emit(MediaEvent.ENDED)
                break


def get_engine(engine_type: str = "simulated", **kwargs) -> MediaEngine:
    """
    Factory function to get a media engine instance.

    Args:
        engine_type: Type of engine (simulated)
        **kwargs: Engine-specific arguments

    Returns:
        MediaEngine instance
    """
    if engine_type.lower() == "simulated":
        return SimulatedEngine(**kwargs)
    else:
        raise ValueError(f"Unknown engine type: {engine_type}")
