"""
Identity gate
Resolves the session identity exactly once before any sync operation
"""

import asyncio
from typing import Optional

from routine_backend.core.errors import IdentityResolutionError
from routine_backend.core.logger import get_logger
from routine_backend.core.protocols import IdentityProviderProtocol

logger = get_logger(__name__)


class IdentityGate:
    """Single-execution identity resolution

    Resolution order: identity of an existing session, then exchange of the
    pre-provisioned token, then a new anonymous identity. Concurrent callers
    share one resolution; a failure is terminal and re-raised to every caller.
    """

    def __init__(
        self, provider: IdentityProviderProtocol, auth_token: Optional[str] = None
    ):
        self.provider = provider
        self.auth_token = auth_token
        self._task: Optional["asyncio.Task[str]"] = None
        self.identity: Optional[str] = None
        self.error: Optional[IdentityResolutionError] = None

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def resolved(self) -> bool:
        return self.identity is not None

    @property
    def failed(self) -> bool:
        return self.error is not None

    async def resolve(self) -> str:
        """Resolve the identity, running the provider at most once

        Raises:
            IdentityResolutionError: if resolution failed
        """
        if self._task is None:
            self._task = asyncio.ensure_future(self._resolve_once())
        # shield: a cancelled caller must not cancel the shared resolution
        return await asyncio.shield(self._task)

    async def _resolve_once(self) -> str:
        try:
            identity = await self._run_provider()
        except IdentityResolutionError as e:
            self.error = e
            logger.error(f"Identity resolution failed: {e}")
            raise
        except Exception as e:
            self.error = IdentityResolutionError(f"Identity provider unavailable: {e}")
            logger.error(f"Identity resolution failed: {e}", exc_info=True)
            raise self.error from e

        if not identity:
            self.error = IdentityResolutionError("Identity provider returned an empty identity")
            raise self.error

        self.identity = identity
        logger.info(f"✓ Identity resolved: {identity}")
        return identity

    async def _run_provider(self) -> Optional[str]:
        existing = await self.provider.current_identity()
        if existing:
            logger.debug("Reusing identity of existing session")
            return existing

        if self.auth_token:
            logger.debug("Exchanging pre-provisioned token")
            return await self.provider.exchange_token(self.auth_token)

        logger.debug("No session or token, creating anonymous identity")
        return await self.provider.create_anonymous()
