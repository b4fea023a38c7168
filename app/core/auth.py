"""Admin API key authentication.

Administrative endpoints (limiter stats and maintenance) are protected by a
static API key list read from ``APP_ADMIN_API_KEYS``. Validation is a plain
function so it can be unit tested without FastAPI.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from app.core.config import settings
from app.core.errors import AuthenticationAppError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 ,key3 "))
        ['key1', 'key2', 'key3']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def validate_api_key(provided_key: str) -> None:
    """Validate ``provided_key`` against the configured admin keys.

    Raises:
        AuthenticationAppError: If no keys are configured or the key is unknown.
    """
    if not settings.app.admin_api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.admin_api_keys)

    if not valid_keys:
        logger.error(
            "api_key_validation_failed",
            extra={"reason": "api_keys_not_configured"},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="Admin authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_ADMIN_API_KEYS or disable with APP_ADMIN_API_KEY_REQUIRED=false"},
        )

    if not any(hmac.compare_digest(provided_key.encode(), key.encode()) for key in valid_keys):
        logger.warning(
            "api_key_validation_failed",
            extra={
                "reason": "invalid_api_key",
                "api_key_hash": hash_identifier(provided_key),
            },
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_admin_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency guarding admin endpoints.

    Raises:
        HTTPException: 403 Forbidden if the key is missing or rejected.
    """
    if not settings.app.admin_api_key_required:
        logger.debug("auth.admin_skipped", extra={"reason": "admin_api_key_required_false"})
        return

    if not x_api_key:
        logger.warning("auth.admin_missing_key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing API key. Provide X-API-Key header.",
        )

    try:
        validate_api_key(x_api_key)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc
