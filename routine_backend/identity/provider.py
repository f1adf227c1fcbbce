"""
Identity provider
Anonymous identities and token exchange, remembered per namespace in the local database
"""

import hashlib
import re
import uuid
from typing import Optional

from routine_backend.core.db import DatabaseManager
from routine_backend.core.errors import IdentityResolutionError
from routine_backend.core.logger import get_logger

logger = get_logger(__name__)

_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9._\-:]{8,512}$")


class LocalIdentityProvider:
    """Identity provider backed by the routine database"""

    def __init__(self, db: DatabaseManager, namespace: str = "default"):
        self.db = db
        self.namespace = namespace

    async def current_identity(self) -> Optional[str]:
        """Identity left by a previous session, if any"""
        row = self.db.get_session_identity(self.namespace)
        if row is None:
            return None
        return row["identity"]

    async def exchange_token(self, token: str) -> str:
        """Exchange a pre-provisioned token for a stable identity

        The same token always yields the same identity.

        Raises:
            IdentityResolutionError: if the token is rejected
        """
        token = (token or "").strip()
        if not _TOKEN_PATTERN.match(token):
            raise IdentityResolutionError("Auth token rejected: malformed token")

        digest = hashlib.sha256(f"{self.namespace}:{token}".encode("utf-8")).hexdigest()
        identity = f"user-{digest[:32]}"
        self.db.set_session_identity(self.namespace, identity, "token")
        logger.info("Auth token exchanged for identity")
        return identity

    async def create_anonymous(self) -> str:
        """Create and remember a new anonymous identity"""
        identity = f"anon-{uuid.uuid4().hex}"
        self.db.set_session_identity(self.namespace, identity, "anonymous")
        logger.info(f"Created anonymous identity {identity}")
        return identity

    async def sign_out(self) -> None:
        """Forget the remembered identity; the next session resolves a new one"""
        self.db.clear_session_identity(self.namespace)
