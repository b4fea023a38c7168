"""Tests for AuthService validation and rate limiting."""

from unittest.mock import AsyncMock, Mock

import pytest

from app.adapters.auth.base import AbstractAuthProvider
from app.adapters.auth.in_memory import InMemoryAuthProvider
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.core.errors import (
    AuthenticationAppError,
    ConflictAppError,
    RateLimitAppError,
    ValidationAppError,
)
from app.services.auth_service import AuthService


@pytest.fixture
def auth_limiter(clock: Mock) -> InMemorySlidingWindowRateLimiter:
    return InMemorySlidingWindowRateLimiter(max_requests=5, window_ms=300_000, clock=clock)


@pytest.fixture
def service(
    auth_provider: InMemoryAuthProvider,
    auth_limiter: InMemorySlidingWindowRateLimiter,
) -> AuthService:
    return AuthService(provider=auth_provider, limiter=auth_limiter)


class TestSignUp:
    @pytest.mark.asyncio
    async def test_normalizes_email(self, service: AuthService) -> None:
        user = await service.sign_up("  Fan@Example.COM ", "secret1", client_key="ip:1")

        assert user.email == "fan@example.com"
        assert user.email_verified is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email,password", [("", "secret1"), ("fan@example.com", "")])
    async def test_missing_fields(self, service: AuthService, email: str, password: str) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            await service.sign_up(email, password, client_key="ip:1")
        assert exc_info.value.code == "validation_error"

    @pytest.mark.asyncio
    async def test_weak_password(self, service: AuthService) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            await service.sign_up("fan@example.com", "12345", client_key="ip:1")

        assert exc_info.value.code == "weak_password"
        assert exc_info.value.details == {"field": "password", "min_length": 6}

    @pytest.mark.asyncio
    async def test_invalid_email(self, service: AuthService) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            await service.sign_up("not-an-email", "secret1", client_key="ip:1")
        assert exc_info.value.code == "invalid_email"

    @pytest.mark.asyncio
    async def test_duplicate_account(self, service: AuthService) -> None:
        await service.sign_up("fan@example.com", "secret1", client_key="ip:1")

        with pytest.raises(ConflictAppError) as exc_info:
            await service.sign_up("FAN@example.com", "secret2", client_key="ip:1")
        assert exc_info.value.code == "user_already_exists"


class TestSignIn:
    @pytest.mark.asyncio
    async def test_round_trip(self, service: AuthService) -> None:
        await service.sign_up("fan@example.com", "secret1", client_key="ip:1")

        session = await service.sign_in("Fan@Example.com", "secret1", client_key="ip:1")

        assert session.user.email == "fan@example.com"
        assert session.access_token

    @pytest.mark.asyncio
    async def test_wrong_password(self, service: AuthService) -> None:
        await service.sign_up("fan@example.com", "secret1", client_key="ip:1")

        with pytest.raises(AuthenticationAppError) as exc_info:
            await service.sign_in("fan@example.com", "wrong-pass", client_key="ip:1")

        assert exc_info.value.code == "invalid_credentials"
        assert exc_info.value.message == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_unknown_user(self, service: AuthService) -> None:
        with pytest.raises(AuthenticationAppError):
            await service.sign_in("ghost@example.com", "secret1", client_key="ip:1")


class TestRateLimiting:
    @pytest.mark.asyncio
    async def test_sixth_attempt_is_blocked_before_provider(
        self,
        auth_limiter: InMemorySlidingWindowRateLimiter,
        clock: Mock,
    ) -> None:
        provider = AsyncMock(spec=AbstractAuthProvider)
        provider.sign_in.side_effect = AuthenticationAppError(
            code="invalid_credentials", message="Invalid email or password"
        )
        service = AuthService(provider=provider, limiter=auth_limiter)

        for _ in range(5):
            with pytest.raises(AuthenticationAppError):
                await service.sign_in("fan@example.com", "guess", client_key="ip:1")

        with pytest.raises(RateLimitAppError) as exc_info:
            await service.sign_in("fan@example.com", "guess", client_key="ip:1")

        assert exc_info.value.details["retry_after_ms"] == 300_000
        assert provider.sign_in.await_count == 5

        clock.return_value = 300_001.0
        with pytest.raises(AuthenticationAppError):
            await service.sign_in("fan@example.com", "guess", client_key="ip:1")

    @pytest.mark.asyncio
    async def test_clients_have_separate_budgets(self, service: AuthService) -> None:
        for _ in range(5):
            with pytest.raises(ValidationAppError):
                await service.sign_up("", "", client_key="ip:1")

        with pytest.raises(RateLimitAppError):
            await service.sign_up("fan@example.com", "secret1", client_key="ip:1")

        user = await service.sign_up("fan@example.com", "secret1", client_key="ip:2")
        assert user.email == "fan@example.com"

    @pytest.mark.asyncio
    async def test_resend_shares_auth_budget(self, service: AuthService) -> None:
        for _ in range(5):
            await service.resend_confirmation("fan@example.com", client_key="ip:1")

        with pytest.raises(RateLimitAppError):
            await service.resend_confirmation("fan@example.com", client_key="ip:1")

    @pytest.mark.asyncio
    async def test_no_limiter_means_no_limit(self, auth_provider: InMemoryAuthProvider) -> None:
        service = AuthService(provider=auth_provider)

        for _ in range(20):
            await service.resend_confirmation("fan@example.com", client_key="ip:1")


class TestResendConfirmation:
    @pytest.mark.asyncio
    async def test_counts_confirmations(
        self, service: AuthService, auth_provider: InMemoryAuthProvider
    ) -> None:
        await service.sign_up("fan@example.com", "secret1", client_key="ip:1")
        await service.resend_confirmation("FAN@example.com", client_key="ip:1")

        assert auth_provider.confirmations_sent("fan@example.com") == 2
        assert auth_provider.confirmations_sent("ghost@example.com") == 0

    @pytest.mark.asyncio
    async def test_requires_email(self, service: AuthService) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            await service.resend_confirmation("   ", client_key="ip:1")
        assert exc_info.value.code == "validation_error"
