"""Authentication service: input validation and abuse protection.

Every public operation consults the auth rate limiter before doing anything
else, so a blocked client never reaches the identity provider and a blocked
attempt is not counted against the budget.
"""

from __future__ import annotations

import logging

from app.adapters.auth.base import AbstractAuthProvider, AuthSession, AuthUser
from app.adapters.rate_limit.base import AbstractRateLimiter
from app.core.config import settings
from app.core.errors import ValidationAppError
from app.core.logging import hash_identifier
from app.core.rate_limit import AUTH_POLICY, consume_or_raise
from app.core.security import is_valid_email, normalize_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthService:
    """Sign-up, sign-in and confirmation resend guarded by a limiter.

    Args:
        provider: Identity provider owning accounts and sessions.
        limiter: Limiter for credential submissions, or None to disable.
            Also skipped while ``APP_RATE_LIMIT_ENABLED`` is false.
    """

    def __init__(
        self,
        provider: AbstractAuthProvider,
        limiter: AbstractRateLimiter | None = None,
    ) -> None:
        self.provider = provider
        self.limiter = limiter

    def _guard(self, client_key: str) -> None:
        # Same switch as enforce_rate_limit, read per call
        if self.limiter is not None and settings.app.rate_limit_enabled:
            consume_or_raise(self.limiter, f"auth:{client_key}", policy=AUTH_POLICY)

    @staticmethod
    def _require_email(email: str) -> str:
        if not email or not email.strip():
            raise ValidationAppError(
                code="validation_error",
                message="Email is required",
                details={"field": "email"},
            )
        normalized = normalize_email(email)
        if not is_valid_email(normalized):
            raise ValidationAppError(
                code="invalid_email",
                message="Email address is not valid",
                details={"field": "email"},
            )
        return normalized

    async def sign_up(self, email: str, password: str, *, client_key: str) -> AuthUser:
        """Register a new account.

        Raises:
            RateLimitAppError: Too many attempts from ``client_key``.
            ValidationAppError: Missing fields, invalid email or weak password.
            ConflictAppError: Email already registered.
        """
        self._guard(client_key)

        if not email or not password:
            raise ValidationAppError(
                code="validation_error",
                message="Email and password required",
            )
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationAppError(
                code="weak_password",
                message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                details={"field": "password", "min_length": MIN_PASSWORD_LENGTH},
            )
        normalized = self._require_email(email)

        user = await self.provider.sign_up(normalized, password)
        logger.info("auth.sign_up.success", extra={"email_hash": hash_identifier(normalized)})
        return user

    async def sign_in(self, email: str, password: str, *, client_key: str) -> AuthSession:
        """Exchange credentials for a session.

        Raises:
            RateLimitAppError: Too many attempts from ``client_key``.
            ValidationAppError: Missing fields.
            AuthenticationAppError: Credentials rejected by the provider.
        """
        self._guard(client_key)

        if not email or not password:
            raise ValidationAppError(
                code="validation_error",
                message="Email and password required",
            )
        normalized = normalize_email(email)

        session = await self.provider.sign_in(normalized, password)
        logger.info("auth.sign_in.success", extra={"email_hash": hash_identifier(normalized)})
        return session

    async def resend_confirmation(self, email: str, *, client_key: str) -> None:
        self._guard(client_key)
        normalized = self._require_email(email)
        await self.provider.resend_confirmation(normalized)
        logger.info(
            "auth.resend_confirmation",
            extra={"email_hash": hash_identifier(normalized)},
        )
