"""Identity provider adapter layer - abstracts over auth backends."""

from app.adapters.auth.base import AbstractAuthProvider, AuthSession, AuthUser
from app.adapters.auth.factory import create_auth_provider
from app.adapters.auth.in_memory import InMemoryAuthProvider

__all__ = [
    "AbstractAuthProvider",
    "AuthSession",
    "AuthUser",
    "InMemoryAuthProvider",
    "create_auth_provider",
]
