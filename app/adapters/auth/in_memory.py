"""In-memory identity provider for development and tests.

Accounts live for the lifetime of the process. Passwords are stored as
salted PBKDF2-SHA256 hashes and compared in constant time.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import secrets
import threading
import uuid
from dataclasses import dataclass

from app.adapters.auth.base import AbstractAuthProvider, AuthSession, AuthUser
from app.core.errors import AuthenticationAppError, ConflictAppError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200_000


@dataclass
class _Account:
    user: AuthUser
    salt: bytes
    password_hash: bytes
    confirmations_sent: int = 1


def _hash_password(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, iterations)


async def _hash_password_off_loop(password: str, salt: bytes, iterations: int) -> bytes:
    """Run the PBKDF2 derivation in the default executor, off the event loop."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, _hash_password, password, salt, iterations)


class InMemoryAuthProvider(AbstractAuthProvider):
    """Thread-safe, process-local account store."""

    def __init__(self, *, iterations: int = PBKDF2_ITERATIONS) -> None:
        self._iterations = iterations
        self._accounts: dict[str, _Account] = {}
        self._lock = threading.Lock()

    async def sign_up(self, email: str, password: str) -> AuthUser:
        salt = secrets.token_bytes(16)
        password_hash = await _hash_password_off_loop(password, salt, self._iterations)
        with self._lock:
            if email in self._accounts:
                raise ConflictAppError(
                    code="user_already_exists",
                    message="An account with this email already exists",
                )
            user = AuthUser(id=str(uuid.uuid4()), email=email, email_verified=False)
            self._accounts[email] = _Account(user=user, salt=salt, password_hash=password_hash)

        logger.info("auth_provider.sign_up", extra={"email_hash": hash_identifier(email)})
        return user

    async def sign_in(self, email: str, password: str) -> AuthSession:
        with self._lock:
            account = self._accounts.get(email)

        if account is None or not hmac.compare_digest(
            await _hash_password_off_loop(password, account.salt, self._iterations),
            account.password_hash,
        ):
            raise AuthenticationAppError(
                code="invalid_credentials",
                message="Invalid email or password",
            )

        return AuthSession(access_token=secrets.token_urlsafe(32), user=account.user)

    async def resend_confirmation(self, email: str) -> None:
        with self._lock:
            account = self._accounts.get(email)
            if account is not None:
                account.confirmations_sent += 1

    def confirmations_sent(self, email: str) -> int:
        """Return how many confirmations were issued for ``email`` (0 if unknown)."""
        with self._lock:
            account = self._accounts.get(email)
            return account.confirmations_sent if account else 0
