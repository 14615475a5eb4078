"""Web application serving the lesson player and accepting progress writes."""

import asyncio
from functools import lru_cache
from urllib.parse import urlencode

from fasthtml.common import *

from course_player.config import get_settings
from course_player.exceptions import ResolutionError
from course_player.logging.config import get_logger
from course_player.playback.resolver import MediaSourceResolver
from course_player.playback.session import LoadingPhase, PlaybackSession
from course_player.progress import ProgressStore, SqlProgressStore
from course_player.web.components.player import PlayerView

logger = get_logger(__name__)

app, rt = fast_app(
    hdrs=(
        Meta(charset="UTF-8"),
        Meta(name="viewport", content="width=device-width, initial-scale=1.0"),
        Style("""
            .video-player { position: relative; background: black; color: white; min-height: 200px; }
            .video-player.fullscreen { position: fixed; inset: 0; z-index: 50; }
            .video-overlay { position: absolute; inset: 0; display: flex; flex-direction: column;
                             align-items: center; justify-content: center; background: rgba(0,0,0,0.7); }
            .video-element { width: 100%; height: 100%; object-fit: contain; }
            .video-controls.hidden { opacity: 0; }
            .progress-fill { height: 4px; background: #a855f7; }
            .error-title { color: #ef4444; }
        """),
    )
)


@lru_cache
def get_resolver() -> MediaSourceResolver:
    return MediaSourceResolver.from_settings(get_settings())


@lru_cache
def get_progress_store() -> ProgressStore:
    return SqlProgressStore()


@rt("/player")
async def get(src: str = "", public: bool = False):
    """Render the player for a video reference."""
    settings = get_settings()
    session = PlaybackSession(source_reference=src, volume=settings.default_volume)
    session.set_phase(LoadingPhase.FETCHING)

    try:
        session.resolved_url = await asyncio.wait_for(
            get_resolver().resolve(src, is_public_asset=public),
            timeout=settings.resolution_timeout,
        )
        session.set_phase(LoadingPhase.BUFFERING)
    except asyncio.TimeoutError:
        session.fail(f"Timed out preparing video after {settings.resolution_timeout:g}s")
    except ResolutionError as e:
        session.fail(str(e))

    if session.error:
        logger.warning(f"Player for '{src}' failed: {session.error}")

    retry_url = "/player?" + urlencode({"src": src, "public": str(public).lower()})
    return PlayerView(session, retry_url=retry_url)


@rt("/progress")
async def post(
    user_id: str,
    lesson_id: str,
    watch_time: float,
    course_id: str = "",
    completed: bool = False,
):
    """Create or update a viewer's progress on a lesson."""
    record = await get_progress_store().upsert_progress(
        user_id=user_id,
        lesson_id=lesson_id,
        course_id=course_id or None,
        watch_time=watch_time,
        completed=completed,
    )
    return {
        "user_id": record.user_id,
        "lesson_id": record.lesson_id,
        "course_id": record.course_id,
        "watch_time": record.watch_time,
        "completed": record.completed,
    }


def serve_app(host: str = "0.0.0.0", port: int | None = None) -> None:
    """Run the web app with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=host, port=port or get_settings().web_port)


if __name__ == "__main__":
    serve_app()
