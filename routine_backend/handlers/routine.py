"""
Routine command handlers
Date selection, toggles and comments sent by the UI shell
"""

from datetime import datetime
from typing import Any, Dict

from routine_backend.core.coordinator import get_coordinator
from routine_backend.core.errors import ActivityIndexError
from routine_backend.core.logger import get_logger
from routine_backend.models import (
    GetRoutineStateRequest,
    SelectDateRequest,
    ToggleActivityRequest,
    UpdateCommentRequest,
)

from . import api_handler

logger = get_logger(__name__)


def _state_response(include_details: bool = True) -> Dict[str, Any]:
    session = get_coordinator().require_session()
    data = session.view().to_dict()
    if not include_details:
        for activity in data["activities"]:
            activity.pop("details", None)
    return {"success": True, "data": data, "timestamp": datetime.now().isoformat()}


def _error_response(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message, "timestamp": datetime.now().isoformat()}


@api_handler(body=GetRoutineStateRequest)
async def get_routine_state(body: GetRoutineStateRequest) -> Dict[str, Any]:
    """Get the schedule of the selected date.

    @param body - Whether to include activity details.
    @returns Session view with success flag and timestamp
    """
    return _state_response(body.include_details is not False)


@api_handler()
async def get_sync_status() -> Dict[str, Any]:
    """Get coordinator status.

    @returns Mode, identity, selected date and saving flag
    """
    return {
        "success": True,
        "data": get_coordinator().get_stats(),
        "timestamp": datetime.now().isoformat(),
    }


@api_handler(body=SelectDateRequest)
async def select_date(body: SelectDateRequest) -> Dict[str, Any]:
    """Switch the active date.

    The schedule is marked stale until the first snapshot of the new date arrives.

    @param body - Date key
    @returns Session view with success flag and timestamp
    """
    session = get_coordinator().require_session()
    session.select_date(body.date)
    return _state_response()


@api_handler(body=ToggleActivityRequest)
async def toggle_activity(body: ToggleActivityRequest) -> Dict[str, Any]:
    """Flip the completion flag of an activity; written immediately.

    @param body - Activity index
    @returns Session view with success flag and timestamp
    """
    session = get_coordinator().require_session()
    try:
        session.toggle_activity(body.index)
    except ActivityIndexError as e:
        logger.warning(f"Toggle rejected: {e}")
        return _error_response(str(e))
    return _state_response()


@api_handler(body=UpdateCommentRequest)
async def update_comment(body: UpdateCommentRequest) -> Dict[str, Any]:
    """Replace the comment of an activity; written after the quiet window.

    @param body - Activity index and comment text
    @returns Session view with success flag and timestamp
    """
    session = get_coordinator().require_session()
    try:
        session.update_comment(body.index, body.text)
    except ActivityIndexError as e:
        logger.warning(f"Comment rejected: {e}")
        return _error_response(str(e))
    return _state_response()


@api_handler()
async def retry_persist() -> Dict[str, Any]:
    """Send the last failed write of the selected date again.

    @returns Session view after the retry, or an error when nothing can be retried
    """
    session = get_coordinator().require_session()
    task = session.retry_failed_persist()
    if task is None:
        return _error_response("No failed write for the selected date")

    await task
    return _state_response()
