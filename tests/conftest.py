"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any import that reads settings.
"""

import os
from unittest.mock import Mock

import pytest

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_ADMIN_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_ADMIN_API_KEYS", "test-admin-key-123,test-admin-key-456")
os.environ.setdefault("APP_RATE_LIMIT_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.adapters.auth.in_memory import InMemoryAuthProvider  # noqa: E402


@pytest.fixture
def clock() -> Mock:
    """Controllable millisecond clock starting at t=0."""
    return Mock(return_value=0.0)


@pytest.fixture
def auth_provider() -> InMemoryAuthProvider:
    # Low iteration count keeps password hashing fast in tests
    return InMemoryAuthProvider(iterations=1_000)
