"""Factory for identity provider instances."""

from app.adapters.auth.base import AbstractAuthProvider
from app.adapters.auth.in_memory import InMemoryAuthProvider
from app.core.config import AppSettings, settings
from app.core.errors import ValidationAppError


def create_auth_provider(app_settings: AppSettings | None = None) -> AbstractAuthProvider:
    """Instantiate the identity provider named by ``APP_AUTH_PROVIDER``.

    Raises:
        ValidationAppError: If the provider is unknown.
    """
    cfg = app_settings or settings.app
    provider = cfg.auth_provider.lower()

    if provider == "memory":
        return InMemoryAuthProvider()

    raise ValidationAppError(
        code="auth_unknown_provider",
        message=f"Unknown auth provider: '{provider}'. Supported providers: memory",
        details={"provider": provider},
    )
