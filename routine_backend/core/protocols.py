"""
Type protocols for the sync engine collaborators

Using Protocols lets the session and coordinator accept any identity provider
or sync channel without importing concrete implementations.
"""

from typing import Callable, List, Optional, Protocol

from routine_backend.core.errors import SubscriptionError
from routine_backend.core.models import ActivityRecord, DailySchedule

# ==================== Identity ====================


class IdentityProviderProtocol(Protocol):
    """Protocol for identity provider operations"""

    async def current_identity(self) -> Optional[str]:
        """Identity of an existing session, None if there is none"""
        ...

    async def exchange_token(self, token: str) -> str:
        """Exchange a pre-provisioned token for an identity"""
        ...

    async def create_anonymous(self) -> str:
        """Create a new anonymous identity"""
        ...


# ==================== Sync ====================


class SubscriptionProtocol(Protocol):
    """Protocol for a live feed handle"""

    def unsubscribe(self) -> None:
        """Stop delivery, including callbacks already queued"""
        ...


class PersistOutcomeProtocol(Protocol):
    success: bool
    date: str
    error: Optional[Exception]


class SyncChannelProtocol(Protocol):
    """Protocol for sync channel operations"""

    def subscribe(
        self,
        identity: Optional[str],
        date: str,
        on_snapshot: Callable[[Optional[List[ActivityRecord]]], None],
        on_error: Callable[[SubscriptionError], None],
    ) -> SubscriptionProtocol:
        """Open a live feed for a date"""
        ...

    async def persist(
        self, identity: Optional[str], date: str, schedule: DailySchedule
    ) -> PersistOutcomeProtocol:
        """Overwrite the record of a date"""
        ...
