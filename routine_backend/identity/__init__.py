from .gate import IdentityGate
from .provider import LocalIdentityProvider

__all__ = ["IdentityGate", "LocalIdentityProvider"]
