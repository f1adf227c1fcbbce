"""
Session state
Owns the selected date and its schedule; the only component that mutates them
"""

import asyncio
import dataclasses
from typing import Callable, Dict, List, Optional, Sequence, Set

from routine_backend.core.debouncer import DEFAULT_QUIET_WINDOW, MutationDebouncer, PersistRequest
from routine_backend.core.errors import (
    ActivityIndexError,
    IdentityRequiredError,
    PersistError,
    SubscriptionError,
)
from routine_backend.core.events import (
    PERSIST_COMPLETED,
    SCHEDULE_UPDATED,
    SYNC_ERROR,
    EventEmitter,
    sync_error_payload,
)
from routine_backend.core.logger import get_logger
from routine_backend.core.merger import merge
from routine_backend.core.models import (
    ActivityRecord,
    ActivityTemplate,
    DailySchedule,
    SessionView,
    SyncState,
    copy_schedule,
    validate_date_key,
)
from routine_backend.core.protocols import SubscriptionProtocol, SyncChannelProtocol

logger = get_logger(__name__)


class SessionState:
    """Current date, its merged schedule and pending mutation intents

    Mutations are applied locally first. Toggles are written at once; comment
    edits go through the debouncer. Snapshots from the live feed replace the
    schedule (remote wins) with one exception: comments typed locally and not
    yet handed to a write are laid on top, so typing is never undone by an
    echo of an older write. Once the debounced write starts, or a toggle write
    carries the comment, the overlay is dropped and remote wins again.

    When the feed of a newly selected date fails before any snapshot arrives,
    the template is shown so the date stays editable; the next write replaces
    the unreadable record.

    Without a channel the session runs template-only: schedules are built from
    the template and nothing is written.
    """

    def __init__(
        self,
        template: Sequence[ActivityTemplate],
        channel: Optional[SyncChannelProtocol] = None,
        identity: Optional[str] = None,
        debounce_seconds: float = DEFAULT_QUIET_WINDOW,
        emitter: Optional[EventEmitter] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        if channel is not None and not identity:
            raise IdentityRequiredError("A sync channel needs a resolved identity")

        self.template = template
        self.channel = channel
        self.identity = identity
        self.emitter = emitter or EventEmitter()
        self._loop = loop

        self.current_date: Optional[str] = None
        self.current_schedule: DailySchedule = []
        self.stale = False
        self.sync_state = SyncState.IDENTITY_READY if channel else SyncState.OFFLINE
        self.last_error: Optional[str] = None

        self.debouncer = MutationDebouncer(self._on_quiet_window, debounce_seconds, loop)
        self._subscription: Optional[SubscriptionProtocol] = None
        self._generation = 0
        # description -> comment typed but not yet handed to a write
        self._comment_intents: Dict[str, str] = {}
        self._in_flight: Set["asyncio.Task[None]"] = set()
        self._last_failed: Optional[PersistRequest] = None

    @property
    def sync_enabled(self) -> bool:
        return self.channel is not None

    @property
    def saving(self) -> bool:
        return self.debouncer.pending or bool(self._in_flight)

    def view(self) -> SessionView:
        return SessionView(
            date=self.current_date,
            schedule=tuple(self.current_schedule),
            saving=self.saving,
            stale=self.stale,
            sync_state=self.sync_state,
            last_error=self.last_error,
        )

    def add_listener(self, callback: Callable[[SessionView], None]) -> Callable[[], None]:
        """Observe every change; returns a function removing the listener"""
        return self.emitter.on(SCHEDULE_UPDATED, callback)

    def _notify(self) -> None:
        self.emitter.emit(SCHEDULE_UPDATED, self.view())

    # ==================== Date selection ====================

    def select_date(self, date: str) -> None:
        """Make date the active date and open its live feed

        The pending comment write of the previous date is dropped and its feed
        closed before anything of the new date is applied. Until the first
        snapshot arrives the schedule is empty and marked stale.
        """
        validate_date_key(date)

        self.debouncer.cancel()
        self._comment_intents.clear()
        self._close_subscription()
        self._generation += 1
        self.current_date = date
        self.last_error = None

        if not self.sync_enabled:
            self.current_schedule = merge(self.template, None)
            self.stale = False
            logger.debug(f"Selected {date} (template only)")
            self._notify()
            return

        self.current_schedule = []
        self.stale = True
        self.sync_state = SyncState.SUBSCRIBING
        self._notify()

        generation = self._generation
        self._subscription = self.channel.subscribe(
            self.identity,
            date,
            lambda activities: self._on_snapshot(generation, activities),
            lambda error: self._on_subscription_error(generation, error),
        )
        logger.debug(f"Selected {date}, waiting for first snapshot")

    def _close_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_snapshot(
        self, generation: int, activities: Optional[List[ActivityRecord]]
    ) -> None:
        # Late delivery from the feed of a previous date
        if generation != self._generation:
            logger.debug("Discarding snapshot of a previous subscription")
            return

        schedule = merge(self.template, activities)
        if self._comment_intents:
            schedule = [
                record.model_copy(update={"comment": self._comment_intents[record.description]})
                if record.description in self._comment_intents
                else record
                for record in schedule
            ]

        self.current_schedule = schedule
        self.stale = False
        self.sync_state = SyncState.LIVE
        logger.debug(
            f"Snapshot applied for {self.current_date}: "
            f"{'no record' if activities is None else f'{len(activities)} stored entries'}"
        )
        self._notify()

    def _on_subscription_error(self, generation: int, error: SubscriptionError) -> None:
        if generation != self._generation:
            return

        logger.warning(f"Live feed for {self.current_date} failed: {error}")
        self.last_error = str(error)
        if self.stale:
            self.current_schedule = merge(self.template, None)
            self.stale = False
        self.emitter.emit(
            SYNC_ERROR, sync_error_payload("subscription", str(error), self.current_date)
        )
        self._notify()

    # ==================== Mutations ====================

    def _check_index(self, index: int) -> ActivityRecord:
        if not isinstance(index, int) or isinstance(index, bool):
            raise ActivityIndexError(index, len(self.current_schedule))
        if index < 0 or index >= len(self.current_schedule):
            raise ActivityIndexError(index, len(self.current_schedule))
        return self.current_schedule[index]

    def _replace(self, index: int, record: ActivityRecord) -> None:
        schedule = list(self.current_schedule)
        schedule[index] = record
        self.current_schedule = schedule

    def toggle_activity(self, index: int) -> Optional["asyncio.Task[None]"]:
        """Flip is_done of one activity and write the whole schedule at once

        Raises:
            ActivityIndexError: if index is out of range, nothing is changed

        Returns:
            The write task, None in template-only mode
        """
        record = self._check_index(index)
        self._replace(index, record.model_copy(update={"is_done": not record.is_done}))

        task = None
        if self.sync_enabled:
            # The immediate write carries every pending comment too
            self.debouncer.cancel()
            self._comment_intents.clear()
            task = self._start_persist(self._request("toggle"))

        logger.debug(f"Toggled activity {index} on {self.current_date}")
        self._notify()
        return task

    def update_comment(self, index: int, text: str) -> None:
        """Replace the comment of one activity and schedule a debounced write

        Raises:
            ActivityIndexError: if index is out of range, nothing is changed
        """
        record = self._check_index(index)
        text = text if isinstance(text, str) else str(text)
        self._replace(index, record.model_copy(update={"comment": text}))

        if self.sync_enabled:
            self._comment_intents[record.description] = text
            self.debouncer.schedule(self._request("comment"))

        self._notify()

    def _request(self, reason: str) -> PersistRequest:
        return PersistRequest(
            identity=self.identity,
            date=self.current_date,
            schedule=copy_schedule(self.current_schedule),
            reason=reason,
        )

    def _on_quiet_window(self, request: PersistRequest) -> None:
        if request.date != self.current_date:
            logger.warning(f"Dropping debounced write for {request.date}, date changed")
            return

        # Write what is shown now, remote snapshots included
        self._comment_intents.clear()
        self._start_persist(
            dataclasses.replace(request, schedule=copy_schedule(self.current_schedule))
        )

    # ==================== Writes ====================

    def _start_persist(self, request: PersistRequest) -> "asyncio.Task[None]":
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._persist(request))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _persist(self, request: PersistRequest) -> None:
        try:
            outcome = await self.channel.persist(request.identity, request.date, request.schedule)
            error = outcome.error if not outcome.success else None
            if not outcome.success and error is None:
                error = PersistError(f"Failed to save {request.date}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Persist of {request.date} raised: {e}", exc_info=True)
            error = PersistError(f"Failed to save {request.date}: {e}")

        # discard() runs in a done callback, later than this point
        self._in_flight.discard(asyncio.current_task())

        if error is not None:
            self._last_failed = request
            if request.date == self.current_date:
                self.last_error = str(error)
            self.emitter.emit(SYNC_ERROR, sync_error_payload("persist", str(error), request.date))
        else:
            if self._last_failed is not None and self._last_failed.date == request.date:
                self._last_failed = None
            if request.date == self.current_date:
                self.last_error = None
            self.emitter.emit(PERSIST_COMPLETED, {"date": request.date, "reason": request.reason})

        self._notify()

    @property
    def failed_request(self) -> Optional[PersistRequest]:
        return self._last_failed

    def retry_failed_persist(self) -> Optional["asyncio.Task[None]"]:
        """Send the last failed payload again if it belongs to the current date"""
        request = self._last_failed
        if request is None or not self.sync_enabled:
            return None
        if request.date != self.current_date:
            logger.info(f"Not retrying write for {request.date}, {self.current_date} is selected")
            return None

        logger.info(f"Retrying write for {request.date}")
        task = self._start_persist(dataclasses.replace(request, reason="retry"))
        self._notify()
        return task

    async def drain(self) -> None:
        """Wait for writes already started"""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def flush(self) -> None:
        """Write a pending comment edit now and wait for all writes"""
        self.debouncer.flush()
        await self.drain()

    def close(self) -> None:
        """Drop the pending comment write and close the live feed"""
        self.debouncer.cancel()
        self._comment_intents.clear()
        self._close_subscription()
        self._generation += 1
        self.sync_state = SyncState.STOPPED
