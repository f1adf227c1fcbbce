"""
Routine session coordinator
Responsible for the lifecycle of one session: identity, store, channel and session state
"""

import asyncio
import sqlite3
from typing import Any, Dict, Optional, Sequence

from routine_backend.config.engine import EngineConfig
from routine_backend.core.db import DatabaseManager
from routine_backend.core.errors import IdentityResolutionError, TemplateError
from routine_backend.core.events import SYNC_ERROR, EventEmitter, sync_error_payload
from routine_backend.core.logger import get_logger
from routine_backend.core.models import ActivityTemplate, SyncState, today_key
from routine_backend.core.protocols import IdentityProviderProtocol, SyncChannelProtocol
from routine_backend.core.session import SessionState
from routine_backend.core.template import load_template

logger = get_logger(__name__)

# Global coordinator instance
_coordinator: Optional["RoutineCoordinator"] = None


class RoutineCoordinator:
    """Session coordinator

    States: idle → identity_pending → identity_ready → subscribing ⇄ live,
    offline when identity resolution fails, stopped after stop().
    """

    def __init__(
        self,
        config: EngineConfig,
        template: Optional[Sequence[ActivityTemplate]] = None,
        provider: Optional[IdentityProviderProtocol] = None,
        channel: Optional[SyncChannelProtocol] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Initialize coordinator

        Args:
            config: Engine configuration
            template: Activity template, loaded from config.template_file when omitted
            provider: Identity provider, a LocalIdentityProvider on the store database when omitted
            channel: Sync channel, a LocalSyncChannel on the store database when omitted
            loop: Event loop for timers and writes, the running loop when omitted
        """
        self.config = config
        self.template = template
        self.provider = provider
        self.channel = channel
        self._loop = loop

        self.emitter = EventEmitter()
        self.gate = None
        self.session: Optional[SessionState] = None
        self.db: Optional[DatabaseManager] = None
        self._mode = SyncState.IDLE
        self.last_error: Optional[str] = None

    @property
    def mode(self) -> SyncState:
        if self.session is not None and self._mode is not SyncState.STOPPED:
            return self.session.sync_state
        return self._mode

    @property
    def is_running(self) -> bool:
        return self.session is not None and self._mode is not SyncState.STOPPED

    def _set_mode(self, mode: SyncState, error: Optional[str] = None) -> None:
        """Update coordinator state fields"""
        self._mode = mode
        self.last_error = error
        if error:
            logger.debug("Coordinator state updated: mode=%s, error=%s", mode.value, error)
        else:
            logger.debug("Coordinator state updated: mode=%s", mode.value)

    def _init_backends(self) -> None:
        """Create the default store-backed provider and channel (lazy import)"""
        if self.provider is not None and self.channel is not None:
            return

        from routine_backend.identity.provider import LocalIdentityProvider
        from routine_backend.sync.channel import LocalSyncChannel
        from routine_backend.sync.store import RecordStore

        if self.db is None:
            self.db = DatabaseManager(self.config.store_path)

        if self.provider is None:
            self.provider = LocalIdentityProvider(self.db, self.config.namespace)
        if self.channel is None:
            self.channel = LocalSyncChannel(
                RecordStore(self.db, self.config.namespace), loop=self._loop
            )

    async def _resolve_identity(self) -> Optional[str]:
        """Resolve the identity; None means template-only mode"""
        from routine_backend.identity.gate import IdentityGate

        try:
            self._init_backends()
            self.gate = IdentityGate(self.provider, self.config.auth_token)
            return await self.gate.resolve()
        except IdentityResolutionError as e:
            message = str(e)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Record store unavailable: {e}", exc_info=True)
            message = f"Record store unavailable: {e}"

        logger.warning(f"Sync disabled for this session: {message}")
        self._set_mode(SyncState.OFFLINE, error=message)
        self.emitter.emit(SYNC_ERROR, sync_error_payload("identity", message, None))
        return None

    async def start(self, date: Optional[str] = None) -> SessionState:
        """Resolve identity, build the session and select the first date

        Args:
            date: First date to show, today when omitted

        Raises:
            TemplateError: if the configured template cannot be loaded
        """
        if self.session is not None and self._mode is not SyncState.STOPPED:
            logger.warning("Coordinator is already running")
            return self.session

        if self.template is None:
            self.template = load_template(self.config.template_file)
        if not len(self.template):
            raise TemplateError("Activity template is empty")

        self._set_mode(SyncState.IDENTITY_PENDING)
        logger.info("Starting routine coordinator...")

        identity = await self._resolve_identity()
        if identity is not None:
            self._set_mode(SyncState.IDENTITY_READY)
            session = SessionState(
                self.template,
                channel=self.channel,
                identity=identity,
                debounce_seconds=self.config.debounce_seconds,
                emitter=self.emitter,
                loop=self._loop,
            )
        else:
            session = SessionState(
                self.template,
                debounce_seconds=self.config.debounce_seconds,
                emitter=self.emitter,
                loop=self._loop,
            )

        self.session = session
        session.select_date(date or today_key())
        if identity is None:
            session.last_error = self.last_error

        logger.info(
            f"Routine coordinator started: {len(self.template)} activities, "
            f"mode={self.mode.value}, date={session.current_date}"
        )
        return session

    async def stop(self, quiet: bool = False) -> None:
        """Write pending edits, close the live feed and stop

        Args:
            quiet: Log at debug level instead of info
        """
        log = logger.debug if quiet else logger.info

        if self.session is None or self._mode is SyncState.STOPPED:
            log("Coordinator not running")
            return

        await self.session.flush()
        self.session.close()
        self._set_mode(SyncState.STOPPED)
        log("Routine coordinator stopped")

    def require_session(self) -> SessionState:
        """Running session

        Raises:
            RuntimeError: if start() has not completed
        """
        if self.session is None or self._mode is SyncState.STOPPED:
            raise RuntimeError("Routine coordinator is not running")
        return self.session

    def get_stats(self) -> Dict[str, Any]:
        """Status summary for the presentation layer"""
        session = self.session
        return {
            "mode": self.mode.value,
            "is_running": self.is_running,
            "identity": session.identity if session else None,
            "sync_enabled": bool(session and session.sync_enabled),
            "current_date": session.current_date if session else None,
            "saving": bool(session and session.saving),
            "activity_count": len(self.template) if self.template is not None else 0,
            "last_error": (session.last_error if session else None) or self.last_error,
        }


def get_coordinator(config: Optional[EngineConfig] = None) -> RoutineCoordinator:
    """Get global coordinator instance

    The first call needs a config unless the loaded config.toml should be used.
    """
    global _coordinator
    if _coordinator is None:
        if config is None:
            from routine_backend.config import get_config

            config = EngineConfig.from_loader(get_config())
        _coordinator = RoutineCoordinator(config)
    return _coordinator


def reset_coordinator() -> None:
    """Forget the global coordinator (a stopped one is not restarted)"""
    global _coordinator
    _coordinator = None
