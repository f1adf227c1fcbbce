"""
Mutation debouncer
Collapses bursts of comment edits into a single persist request
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

from routine_backend.core.logger import get_logger
from routine_backend.core.models import DailySchedule

logger = get_logger(__name__)

DEFAULT_QUIET_WINDOW = 0.5


@dataclass(frozen=True)
class PersistRequest:
    """Full overwrite of one date record, bound to the date it was made for"""

    identity: str
    date: str
    schedule: DailySchedule
    reason: str = "comment"


class MutationDebouncer:
    """Single cancellable timer per session

    Each schedule() call replaces the pending payload and restarts the quiet
    window; the callback receives only the latest payload once the window
    elapses without another call.
    """

    def __init__(
        self,
        on_fire: Callable[[PersistRequest], None],
        delay: float = DEFAULT_QUIET_WINDOW,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Args:
            on_fire: Called on the event loop with the latest request
            delay: Quiet window in seconds
            loop: Event loop for the timer, the running loop when omitted
        """
        self.on_fire = on_fire
        self.delay = delay
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[PersistRequest] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def schedule(self, request: PersistRequest) -> None:
        """Replace the pending payload and restart the quiet window"""
        if self._handle is not None:
            self._handle.cancel()

        loop = self._loop or asyncio.get_running_loop()
        self._pending = request
        self._handle = loop.call_later(self.delay, self._fire)
        logger.debug(
            f"Persist for {request.date} scheduled in {self.delay:.3f}s ({request.reason})"
        )

    def cancel(self) -> Optional[PersistRequest]:
        """Drop the pending payload without firing it

        Returns:
            The dropped request, None if nothing was pending
        """
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        dropped, self._pending = self._pending, None
        if dropped is not None:
            logger.debug(f"Pending persist for {dropped.date} cancelled")
        return dropped

    def flush(self) -> Optional[PersistRequest]:
        """Fire the pending payload now instead of waiting for the window"""
        request = self._pending
        if request is None:
            return None
        self._fire()
        return request

    def _fire(self) -> None:
        request, self._pending = self._pending, None
        self._handle = None

        # cancel() raced with an already-expired timer
        if request is None:
            return

        logger.debug(f"Quiet window elapsed, persisting {request.date}")
        self.on_fire(request)
