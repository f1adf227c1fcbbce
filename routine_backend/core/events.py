"""
Event sending manager
Used to notify the presentation layer of session changes
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from routine_backend.core.logger import get_logger

logger = get_logger(__name__)

SCHEDULE_UPDATED = "schedule-updated"
SYNC_ERROR = "sync-error"
PERSIST_COMPLETED = "persist-completed"

Handler = Callable[[Any], None]


class EventEmitter:
    """Per-session observer registry"""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}

    def on(self, event_name: str, handler: Handler) -> Callable[[], None]:
        """Register a handler

        Returns:
            Function removing the handler
        """
        self._handlers.setdefault(event_name, []).append(handler)

        def off() -> None:
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

        return off

    def emit(self, event_name: str, payload: Any) -> bool:
        """Call every handler of an event

        A failing handler is logged and does not stop the others.

        Returns:
            True if all handlers ran successfully, False otherwise
        """
        success = True
        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(payload)
            except Exception:
                success = False
                logger.error(f"❌ [events] Handler failed: {event_name}", exc_info=True)
        return success


def sync_error_payload(
    kind: str, message: str, date: Optional[str], timestamp: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build the "sync error" notice sent to the presentation layer

    Args:
        kind: identity / subscription / persist
        message: Human readable error
        date: Date the failure concerns, None for identity failures
        timestamp: Failure timestamp

    Returns:
        Payload dictionary
    """
    resolved_timestamp = timestamp or datetime.now().isoformat()
    return {
        "type": f"{kind}_failed",
        "data": {"kind": kind, "message": message, "date": date},
        "timestamp": resolved_timestamp,
    }
