"""
Models for UI shell command communication
"""

from .base import BaseModel, DocumentModel
from .requests import (
    GetRoutineStateRequest,
    SelectDateRequest,
    ToggleActivityRequest,
    UpdateCommentRequest,
)

__all__ = [
    # Base
    "BaseModel",
    "DocumentModel",
    # Routine
    "GetRoutineStateRequest",
    "SelectDateRequest",
    "ToggleActivityRequest",
    "UpdateCommentRequest",
]
