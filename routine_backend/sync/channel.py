"""
Sync channel
Live subscription to one date record and full-record overwrites
"""

import asyncio
import sqlite3
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from routine_backend.core.errors import (
    IdentityRequiredError,
    PersistError,
    SubscriptionError,
)
from routine_backend.core.logger import get_logger
from routine_backend.core.models import (
    ActivityRecord,
    DailySchedule,
    parse_record,
    schedule_to_document,
    validate_date_key,
)

from .store import RecordStore, StoredRecord

logger = get_logger(__name__)

SnapshotCallback = Callable[[Optional[List[ActivityRecord]]], None]
SubscriptionErrorCallback = Callable[[SubscriptionError], None]


@dataclass(frozen=True)
class PersistOutcome:
    """Result of one overwrite"""

    success: bool
    date: str
    revision: Optional[int] = None
    error: Optional[PersistError] = None


def _require_identity(identity: Optional[str]) -> str:
    if not identity:
        raise IdentityRequiredError("Sync operations need a resolved identity")
    return identity


def parse_document(document: Any) -> List[ActivityRecord]:
    """Activities of a stored document

    Entries without a usable description are skipped; the merge drops
    unmatched entries anyway.

    Raises:
        SubscriptionError: if the document does not have the expected layout
    """
    if not isinstance(document, dict) or not isinstance(document.get("activities"), list):
        raise SubscriptionError("Stored document has no activities list")

    activities = []
    for position, entry in enumerate(document["activities"]):
        record = parse_record(entry)
        if record is None:
            logger.warning(f"Skipping unusable stored activity at position {position}")
            continue
        activities.append(record)
    return activities


class Subscription:
    """Handle of one live feed

    Callbacks are queued on the event loop in the order the store emits them;
    anything still queued when unsubscribe() runs is discarded.
    """

    def __init__(
        self,
        identity: str,
        date: str,
        on_snapshot: SnapshotCallback,
        on_error: SubscriptionErrorCallback,
        loop: asyncio.AbstractEventLoop,
    ):
        self.identity = identity
        self.date = date
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True
        self._loop = loop
        self._unwatch: Optional[Callable[[], None]] = None

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
        logger.debug(f"Unsubscribed from {self.identity}/{self.date}")

    def _queue_record(self, record: Optional[StoredRecord]) -> None:
        self._loop.call_soon(self._dispatch_record, record)

    def _queue_error(self, error: Exception) -> None:
        self._loop.call_soon(self._dispatch_error, error)

    def _dispatch_record(self, record: Optional[StoredRecord]) -> None:
        if not self.active:
            return

        if record is None:
            self.on_snapshot(None)
            return

        try:
            activities = parse_document(record.document)
        except SubscriptionError as e:
            logger.warning(f"Discarding snapshot for {self.date}: {e}")
            self.on_error(e)
            return

        self.on_snapshot(activities)

    def _dispatch_error(self, error: Exception) -> None:
        if not self.active:
            return
        if not isinstance(error, SubscriptionError):
            wrapped = SubscriptionError(f"Live feed for {self.date} failed: {error}")
            wrapped.__cause__ = error
            error = wrapped
        self.on_error(error)


class LocalSyncChannel:
    """Sync channel over a RecordStore"""

    def __init__(
        self,
        store: RecordStore,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.store = store
        self._loop = loop

    def subscribe(
        self,
        identity: Optional[str],
        date: str,
        on_snapshot: SnapshotCallback,
        on_error: SubscriptionErrorCallback,
    ) -> Subscription:
        """Open a live feed for a date

        on_snapshot receives the current value (None when the date has no
        record) and then every later overwrite.

        Raises:
            IdentityRequiredError: if identity is not resolved
        """
        identity = _require_identity(identity)
        validate_date_key(date)
        loop = self._loop or asyncio.get_running_loop()

        subscription = Subscription(identity, date, on_snapshot, on_error, loop)
        subscription._unwatch = self.store.watch(
            identity, date, subscription._queue_record, subscription._queue_error
        )

        try:
            current = self.store.read(identity, date)
        except sqlite3.Error as e:
            logger.error(f"Initial read of {identity}/{date} failed: {e}", exc_info=True)
            subscription._queue_error(e)
        except ValueError as e:
            logger.warning(f"Stored document of {identity}/{date} is not valid JSON: {e}")
            subscription._queue_error(
                SubscriptionError(f"Stored document of {date} is not valid JSON: {e}")
            )
        else:
            subscription._queue_record(current)

        logger.debug(f"Subscribed to {identity}/{date}")
        return subscription

    async def persist(
        self, identity: Optional[str], date: str, schedule: DailySchedule
    ) -> PersistOutcome:
        """Overwrite the record of a date with the full schedule

        Failures are reported in the outcome, never retried here.

        Raises:
            IdentityRequiredError: if identity is not resolved
        """
        identity = _require_identity(identity)
        validate_date_key(date)
        document = schedule_to_document(schedule)

        try:
            revision = self.store.write(identity, date, document)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Persist of {identity}/{date} failed: {e}", exc_info=True)
            error = PersistError(f"Failed to save {date}: {e}")
            error.__cause__ = e
            return PersistOutcome(success=False, date=date, error=error)

        logger.debug(f"Persisted {len(schedule)} activities to {identity}/{date}")
        return PersistOutcome(success=True, date=date, revision=revision)
