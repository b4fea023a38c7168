from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str
    email_verified: bool = False


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: AuthUser


class AbstractAuthProvider(ABC):
    """Interface for identity providers that own accounts and sessions.

    Emails passed in are already normalized by the service layer.
    """

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> AuthUser:
        """Register a new account.

        Raises:
            ConflictAppError: If the email is already registered.
        """
        ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Exchange credentials for a session.

        Raises:
            AuthenticationAppError: If the credentials are rejected.
        """
        ...

    @abstractmethod
    async def resend_confirmation(self, email: str) -> None:
        """Send the sign-up confirmation again (no-op for unknown emails)."""
        ...
