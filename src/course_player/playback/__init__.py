"""Video playback for Course Player."""

from course_player.playback.controller import PlaybackController
from course_player.playback.players import MediaEngine, MediaEvent, SimulatedEngine, get_engine
from course_player.playback.reporter import ProgressReporter
from course_player.playback.resolver import MediaSourceResolver
from course_player.playback.session import LoadingPhase, PlaybackSession, PlayerOptions
from course_player.playback.visibility import VisibilityCoordinator

__all__ = [
    "LoadingPhase",
    "MediaEngine",
    "MediaEvent",
    "MediaSourceResolver",
    "PlaybackController",
    "PlaybackSession",
    "PlayerOptions",
    "ProgressReporter",
    "SimulatedEngine",
    "VisibilityCoordinator",
    "get_engine",
]
