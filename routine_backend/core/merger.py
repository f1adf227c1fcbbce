"""
Record merging logic
Reconciles the activity template with the persisted record of a date
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union

from routine_backend.core.models import (
    ActivityRecord,
    ActivityTemplate,
    DailySchedule,
    parse_record,
)

PersistedEntry = Union[ActivityRecord, Mapping[str, Any]]


def _index_by_description(persisted: Iterable[PersistedEntry]) -> Dict[str, ActivityRecord]:
    """First persisted entry per description, unusable entries skipped"""
    index: Dict[str, ActivityRecord] = {}
    for entry in persisted:
        record = parse_record(entry)
        if record is None:
            continue
        index.setdefault(record.description, record)
    return index


def merge(
    template: Sequence[ActivityTemplate],
    persisted: Optional[Iterable[PersistedEntry]] = None,
) -> DailySchedule:
    """Produce the schedule for a date from the template and its persisted record.

    The result has exactly one record per template entry, in template order.
    Persisted entries are matched by description and contribute only
    ``is_done`` and ``comment``; time label and details always come from the
    template. Persisted entries with no template counterpart are dropped.

    Args:
        template: Ordered activity definitions
        persisted: Stored activities for the date, None when the date has no record

    Returns:
        New list of new ActivityRecord objects, inputs are left untouched
    """
    if persisted is None:
        return [ActivityRecord.from_template(activity) for activity in template]

    by_description = _index_by_description(persisted)

    schedule: DailySchedule = []
    for activity in template:
        stored = by_description.get(activity.description)
        if stored is None:
            schedule.append(ActivityRecord.from_template(activity))
            continue

        schedule.append(
            ActivityRecord(
                time_label=activity.time_label,
                description=activity.description,
                details=activity.details,
                is_done=stored.is_done,
                comment=stored.comment,
            )
        )

    return schedule
