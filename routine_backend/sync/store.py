"""
Record store
Per-date routine documents in SQLite, with in-process change watchers so
every session sharing the store sees overwrites as they happen
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from routine_backend.core.db import DatabaseManager
from routine_backend.core.logger import get_logger

logger = get_logger(__name__)

ChangeCallback = Callable[[Optional["StoredRecord"]], None]
ErrorCallback = Callable[[Exception], None]


@dataclass(frozen=True)
class StoredRecord:
    """Document of one (identity, date) as stored"""

    document: Dict[str, Any]
    revision: int
    updated_at: Optional[str] = None


@dataclass(eq=False)
class _Watcher:
    on_change: ChangeCallback
    on_error: ErrorCallback


class RecordStore:
    """Remote store abstraction over the local database

    Writes always replace the whole document.
    """

    def __init__(self, db: DatabaseManager, namespace: str = "default"):
        self.db = db
        self.namespace = namespace
        self._watchers: Dict[Tuple[str, str], List[_Watcher]] = {}

    def read(self, identity: str, date: str) -> Optional[StoredRecord]:
        """Current document of a date, None when the date has never been written"""
        row = self.db.get_record(self.namespace, identity, date)
        if row is None:
            return None
        return StoredRecord(
            document=row["document"],
            revision=row["revision"],
            updated_at=row["updated_at"],
        )

    def write(self, identity: str, date: str, document: Dict[str, Any]) -> int:
        """Overwrite the document of a date and notify its watchers

        Returns:
            Revision after the write
        """
        revision = self.db.put_record(self.namespace, identity, date, document)
        self._notify(identity, date, StoredRecord(document=document, revision=revision))
        return revision

    def refresh(self, identity: str, date: str) -> None:
        """Re-read a date and push it to its watchers

        Picks up writes made by other processes sharing the database file.
        """
        try:
            record = self.read(identity, date)
        except Exception as e:
            logger.error(f"Failed to refresh record {identity}/{date}: {e}", exc_info=True)
            self.report_error(identity, date, e)
            return
        self._notify(identity, date, record)

    def watch(
        self,
        identity: str,
        date: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback,
    ) -> Callable[[], None]:
        """Register change callbacks for a date

        Returns:
            Function removing the registration, safe to call more than once
        """
        key = (identity, date)
        watcher = _Watcher(on_change=on_change, on_error=on_error)
        self._watchers.setdefault(key, []).append(watcher)

        def unwatch() -> None:
            watchers = self._watchers.get(key)
            if watchers and watcher in watchers:
                watchers.remove(watcher)
                if not watchers:
                    del self._watchers[key]

        return unwatch

    def watcher_count(self, identity: str, date: str) -> int:
        return len(self._watchers.get((identity, date), []))

    def report_error(self, identity: str, date: str, error: Exception) -> None:
        """Tell the watchers of a date that their feed failed"""
        for watcher in list(self._watchers.get((identity, date), [])):
            try:
                watcher.on_error(error)
            except Exception:
                logger.error("Record watcher error callback failed", exc_info=True)

    def _notify(self, identity: str, date: str, record: Optional[StoredRecord]) -> None:
        for watcher in list(self._watchers.get((identity, date), [])):
            try:
                watcher.on_change(record)
            except Exception:
                logger.error("Record watcher callback failed", exc_info=True)
