"""Named, cancellable timers owned by a single player."""

import asyncio
from typing import Callable, Dict, Optional

from course_player.logging.config import get_logger

logger = get_logger(__name__)


class Timers:
    """
    Registry of one-shot timers on the running event loop.

    Scheduling a name that is already pending replaces the old timer.
    cancel_all() is called when the owning player closes.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handles: Dict[str, asyncio.TimerHandle] = {}

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, name: str, delay: float, callback: Callable[[], None]) -> None:
        self.cancel(name)

        def fire() -> None:
            self._handles.pop(name, None)
            try:
                callback()
            except Exception as e:
                logger.error(f"Timer '{name}' failed: {e}", exc_info=True)

        self._handles[name] = self._get_loop().call_later(delay, fire)

    def cancel(self, name: str) -> bool:
        handle = self._handles.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def is_pending(self, name: str) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)
