"""
Request models for routine commands
Bodies sent by the UI shell, camelCase on the wire
"""

from typing import Optional

from pydantic import Field, field_validator

from .base import BaseModel


class SelectDateRequest(BaseModel):
    """Request parameters for selecting the active date.

    @property date - Date key in YYYY-MM-DD form.
    """

    date: str

    @field_validator("date")
    @classmethod
    def check_date(cls, value: str) -> str:
        # Lazy import: core.models imports this package for its base model
        from routine_backend.core.models import validate_date_key

        return validate_date_key(value)


class ToggleActivityRequest(BaseModel):
    """Request parameters for flipping the completion flag of an activity.

    @property index - Position of the activity in the schedule.
    """

    index: int = Field(ge=0)


class UpdateCommentRequest(BaseModel):
    """Request parameters for replacing the comment of an activity.

    @property index - Position of the activity in the schedule.
    @property text - New comment, may be empty.
    """

    index: int = Field(ge=0)
    text: str = Field(default="", max_length=10000)


class GetRoutineStateRequest(BaseModel):
    """Request parameters for reading the session state.

    @property includeDetails - Whether activity details are included.
    """

    include_details: Optional[bool] = True
