"""Video player component for the web app."""

import math

from fasthtml.common import *

from course_player.playback.session import LoadingPhase, PlaybackSession


def format_time(seconds: float) -> str:
    """Format seconds as m:ss, or h:mm:ss past the hour."""
    if seconds is None or math.isnan(seconds) or seconds < 0:
        return "0:00"

    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def LoadingOverlay(phase: LoadingPhase):
    """Spinner shown until the engine can play."""
    message = "Preparing video..." if phase is LoadingPhase.FETCHING else "Loading video..."
    return Div(
        Div(cls="spinner"),
        P(message),
        data_testid="video-loading",
        cls="video-overlay",
    )


def ErrorPanel(message: str, retry_url: str = ""):
    """Error message with a retry action."""
    children = [
        P("Error loading video", data_testid="error-title", cls="error-title"),
        P(message or "Failed to load video", data_testid="error-message"),
    ]
    if retry_url:
        children.append(
            Button(
                "Retry",
                hx_get=retry_url,
                hx_target="#video-player",
                hx_swap="outerHTML",
                data_testid="retry-button",
            )
        )
    return Div(
        *children,
        data_testid="video-error",
        cls="video-overlay video-error",
    )


def PlayerView(session: PlaybackSession, retry_url: str = ""):
    """Render a player for the given session state."""
    if session.loading_phase is LoadingPhase.ERROR:
        return Div(ErrorPanel(session.error, retry_url), id="video-player", cls="video-player")

    children = []
    if session.is_loading:
        children.append(LoadingOverlay(session.loading_phase))

    if session.resolved_url:
        children.append(
            Video(
                src=session.resolved_url,
                preload="metadata",
                playsinline=True,
                autoplay=session.is_playing,
                muted=session.is_muted,
                data_testid="video-element",
                cls="video-element",
            )
        )
        children.append(
            Div(
                Div(style=f"width: {session.progress_percent:.1f}%", cls="progress-fill"),
                Span(
                    f"{format_time(session.current_time)} / {format_time(session.duration)}",
                    data_testid="video-time",
                ),
                cls="video-controls" if session.controls_visible else "video-controls hidden",
            )
        )

    return Div(
        *children,
        id="video-player",
        cls="video-player fullscreen" if session.is_full_screen else "video-player",
    )
