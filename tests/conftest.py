"""Root test fixtures shared across all test types.

This conftest contains fixtures that can be used by both unit and integration tests.
Database-specific fixtures are in tests/integration/conftest.py.
"""

import os

# Point the app at an in-memory database before any app imports
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# ruff: noqa: E402 - Imports must be after env var setup

import pytest
import structlog
from structlog.testing import CapturingLogger

from src.novohaven.core.config import Settings, get_settings
from src.novohaven.core.logging import clear_request_context
from src.novohaven.services import AIService

# Clear settings cache to ensure test environment variables are picked up
get_settings.cache_clear()


# --- Settings ---


@pytest.fixture
def settings() -> Settings:
    """Settings with no provider keys: only the mock models are available."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        openai_api_key=None,
        anthropic_api_key=None,
        google_api_key=None,
        brightdata_api_key=None,
    )


@pytest.fixture
async def ai_service(settings: Settings):
    service = AIService(settings)
    yield service
    await service.close()


# --- Logging ---


@pytest.fixture
def capturing_logger():
    """Route structlog output to a CapturingLogger for the duration of a test."""
    cap_logger = CapturingLogger()
    old_config = structlog.get_config()

    structlog.configure(
        processors=[structlog.contextvars.merge_contextvars],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=lambda *args, **kwargs: cap_logger,
        cache_logger_on_first_use=False,
    )

    clear_request_context()
    yield cap_logger
    clear_request_context()
    structlog.configure(**old_config)
