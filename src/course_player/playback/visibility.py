"""Pause and resume playback as the page is hidden and shown."""

from typing import TYPE_CHECKING

from course_player.logging.config import get_logger

if TYPE_CHECKING:
    from course_player.playback.controller import PlaybackController

logger = get_logger(__name__)


class VisibilityCoordinator:
    """
    Observes page visibility on behalf of a player.

    Holds nothing but the "was playing" snapshot on the session; the media
    engine is only touched through the controller.
    """

    def __init__(self, controller: "PlaybackController"):
        self.controller = controller

    @property
    def session(self):
        return self.controller.session

    async def on_visibility_change(self, visible: bool) -> None:
        if self.controller.closed:
            return
        if visible:
            await self.on_visible()
        else:
            self.on_hidden()

    def on_hidden(self) -> None:
        self.session.is_tab_visible = False

        if self.controller.is_playing:
            logger.debug("Page hidden, pausing playback")
            self.controller.pause()
            self.session.was_playing_before_hidden = True

        self.controller.cancel_housekeeping()

    async def on_visible(self) -> None:
        self.session.is_tab_visible = True

        if not self.session.was_playing_before_hidden:
            return

        self.session.was_playing_before_hidden = False
        logger.debug("Page visible again, resuming playback")
        await self.controller.play()
