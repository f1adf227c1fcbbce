"""
Data model definitions
Contains ActivityTemplate, ActivityRecord, DailySchedule and the engine state enums
"""

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError, field_validator

from routine_backend.core.errors import InvalidDateError
from routine_backend.models.base import DocumentModel

_DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class SyncState(Enum):
    """Engine state per session"""

    IDLE = "idle"
    IDENTITY_PENDING = "identity_pending"
    IDENTITY_READY = "identity_ready"
    SUBSCRIBING = "subscribing"
    LIVE = "live"
    OFFLINE = "offline"  # identity failed, template-only mode
    STOPPED = "stopped"


@dataclass(frozen=True)
class ActivityTemplate:
    """Activity slot definition, merge key is description"""

    time_label: str
    description: str
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "timeLabel": self.time_label,
            "description": self.description,
            "details": self.details,
        }


class ActivityRecord(DocumentModel):
    """Per-date state of one template slot

    Stored entries written by older clients may carry nulls or lack the
    label; those read back as the defaults.
    """

    time_label: str = ""
    description: str
    details: Optional[str] = None
    is_done: bool = False
    comment: str = ""

    @field_validator("time_label", "comment", mode="before")
    @classmethod
    def null_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("is_done", mode="before")
    @classmethod
    def null_flag(cls, value: Any) -> Any:
        return False if value is None else value

    @classmethod
    def from_template(cls, template: ActivityTemplate) -> "ActivityRecord":
        """Fresh record for a slot with no persisted counterpart"""
        return cls(
            time_label=template.time_label,
            description=template.description,
            details=template.details,
        )


DailySchedule = List[ActivityRecord]


def parse_record(entry: Any) -> Optional[ActivityRecord]:
    """Record of one stored entry, None when it cannot be matched to a slot"""
    if isinstance(entry, ActivityRecord):
        return entry
    if not isinstance(entry, Mapping):
        return None
    description = entry.get("description")
    if not isinstance(description, str) or not description:
        return None
    try:
        return ActivityRecord.model_validate(entry)
    except ValidationError:
        return None


def copy_schedule(schedule: DailySchedule) -> DailySchedule:
    """Detached copy, safe to hand to a pending write"""
    return [record.model_copy() for record in schedule]


def schedule_to_document(schedule: DailySchedule) -> Dict[str, Any]:
    """Serialize a schedule to the stored document layout"""
    return {"activities": [record.model_dump() for record in schedule]}


def validate_date_key(value: Any) -> str:
    """Return value if it is a real calendar date in YYYY-MM-DD form

    Raises:
        InvalidDateError: for anything else
    """
    if not isinstance(value, str) or not _DATE_KEY_PATTERN.match(value):
        raise InvalidDateError(f"Invalid date key: {value!r}")
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateError(f"Invalid date key: {value!r}") from e
    return value


def today_key() -> str:
    """Date key for the local current day"""
    return date.today().isoformat()


@dataclass(frozen=True)
class SessionView:
    """What the presentation layer renders"""

    date: Optional[str]
    schedule: Tuple[ActivityRecord, ...] = ()
    saving: bool = False
    stale: bool = False
    sync_state: SyncState = SyncState.IDLE
    last_error: Optional[str] = None
    total_count: int = field(init=False)
    completed_count: int = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "total_count", len(self.schedule))
        object.__setattr__(
            self, "completed_count", sum(1 for record in self.schedule if record.is_done)
        )

    @property
    def progress(self) -> float:
        """Completed fraction, 0.0 for an empty schedule"""
        if not self.total_count:
            return 0.0
        return self.completed_count / self.total_count

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "date": self.date,
            "activities": [record.model_dump() for record in self.schedule],
            "saving": self.saving,
            "stale": self.stale,
            "syncState": self.sync_state.value,
            "lastError": self.last_error,
            "completedCount": self.completed_count,
            "totalCount": self.total_count,
            "progress": self.progress,
        }
