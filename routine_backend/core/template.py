"""
Template store
The fixed, ordered catalog of activity slots for a day
"""

from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import yaml

from routine_backend.core.errors import TemplateError
from routine_backend.core.logger import get_logger
from routine_backend.core.models import ActivityTemplate

logger = get_logger(__name__)

# (time label, description, details)
DEFAULT_ROUTINE: Tuple[Tuple[str, str, Optional[str]], ...] = (
    ("5:10 AM", "Wake up & wudu", "Drink a glass of warm water."),
    ("5:30 – 6:00 AM", "Fajr + Qur’an", "Keep a straight posture during recitation."),
    ("6:05 – 6:35 AM", "Exercise", "Strength, stretches, and breathing."),
    ("6:35 – 6:55 AM", "Shower + Breakfast", "Fuel for the day: paneer, eggs, or poha."),
    ("6:55 – 7:10 AM", "Cycle to library", None),
    ("7:10 – 11:30 AM", "Library deep study", "Stand and stretch every hour. Carry water + nuts."),
    ("11:30 – 12:15 PM", "Light lunch + break", "Keep it light to avoid drowsiness."),
    ("12:15 – 1:15 PM", "Skill study", "Use a small cushion for lower back support."),
    ("1:15 – 1:25 PM", "Pack & prepare", "Gentle shoulder & neck roll before leaving."),
    ("1:30 PM", "Dhuhr prayer", "Prayer itself stretches spine naturally."),
    ("1:35 – 1:55 PM", "Cycle to work", None),
    ("2:00 – 6:00 PM", "Work", "Stretch neck/back at least once per hour. Stay hydrated."),
    ("4:00 PM", "Snack", "Roasted chana, fruit, or sandwich."),
    ("5:15 PM", "Asr prayer", None),
    ("6:00 – 6:25 PM", "Cycle home", "Cardio + fresh air."),
    ("6:30 PM", "Maghrib prayer", None),
    ("6:40 – 8:20 PM", "Home study block", "Maintain proper posture with back support."),
    ("8:30 PM", "Isha prayer", None),
    ("8:45 – 9:15 PM", "Dinner", "Avoid oily/spicy foods. Add curd or salad."),
    ("9:15 – 10:00 PM", "Skill practice", "Take a standing stretch break halfway."),
    ("10:00 – 10:20 PM", "Journaling + planning", None),
    ("10:20 – 11:00 PM", "Qur’an reflection", "Sit with straight back support."),
    ("11:00 – 11:15 PM", "Relax", "Light stretching + warm milk."),
    ("11:15 PM", "Sleep", "Medium-firm mattress and pillow."),
)


class TemplateStore(Sequence[ActivityTemplate]):
    """Immutable ordered list of activity definitions

    Declaration order is the display order. Descriptions are the merge key,
    so they must be non-empty and unique.
    """

    def __init__(self, activities: Iterable[ActivityTemplate]):
        self._activities: Tuple[ActivityTemplate, ...] = tuple(activities)
        self._validate()

    def _validate(self) -> None:
        seen = set()
        for position, activity in enumerate(self._activities):
            if not activity.description or not activity.description.strip():
                raise TemplateError(f"Activity #{position} has an empty description")
            if activity.description in seen:
                raise TemplateError(f"Duplicate activity description: {activity.description!r}")
            seen.add(activity.description)

    def __getitem__(self, index):  # type: ignore[override]
        return self._activities[index]

    def __len__(self) -> int:
        return len(self._activities)

    def __iter__(self) -> Iterator[ActivityTemplate]:
        return iter(self._activities)

    def descriptions(self) -> List[str]:
        return [activity.description for activity in self._activities]

    @classmethod
    def from_entries(cls, entries: Iterable[Mapping[str, Any]]) -> "TemplateStore":
        """Build from mappings with time/description/details keys

        Both ``time`` and ``timeLabel``/``time_label`` are accepted for the time label.
        """
        activities = []
        for position, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise TemplateError(f"Activity #{position} is not a mapping: {entry!r}")

            time_label = entry.get("time", entry.get("timeLabel", entry.get("time_label")))
            description = entry.get("description")
            if not isinstance(time_label, str) or not isinstance(description, str):
                raise TemplateError(
                    f"Activity #{position} needs string 'time' and 'description' fields"
                )

            activities.append(
                ActivityTemplate(
                    time_label=time_label.strip(),
                    description=description.strip(),
                    details=_normalize_details(entry.get("details")),
                )
            )
        return cls(activities)


def _normalize_details(details: Any) -> Optional[str]:
    # Whitespace-only details carry nothing to show
    if details is None:
        return None
    details = str(details).strip()
    return details or None


def default_template() -> TemplateStore:
    """Built-in routine"""
    return TemplateStore(
        ActivityTemplate(time_label=time_label, description=description, details=details)
        for time_label, description, details in DEFAULT_ROUTINE
    )


def load_template(path: Optional[str] = None) -> TemplateStore:
    """Load the routine from a YAML file, falling back to the built-in one

    The file holds either a list of activities or a mapping with an
    ``activities`` list.

    Raises:
        TemplateError: if the file cannot be read or parsed
    """
    if not path:
        return default_template()

    template_path = Path(path)
    try:
        with open(template_path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise TemplateError(f"Failed to load template file {template_path}: {e}") from e

    if isinstance(content, Mapping):
        content = content.get("activities")
    if not isinstance(content, list):
        raise TemplateError(f"Template file {template_path} must contain a list of activities")

    template = TemplateStore.from_entries(content)
    logger.info(f"✓ Loaded {len(template)} activities from {template_path}")
    return template
