"""Shared fixtures for unit tests."""

import os
from collections.abc import Generator
from typing import Any

import pytest
from loguru import logger

from src.core.config import Settings, get_settings
from src.core.context import RequestContext
from src.core.logging import _state


@pytest.fixture
def mock_settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Provide a Settings object with test values.

    Returns:
        Settings: Settings bound to the loopback interface.
    """
    monkeypatch.setenv("APP_NAME", "TestApp")
    monkeypatch.setenv("APP_VERSION", "1.0.0")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("API_HOST", "127.0.0.1")
    monkeypatch.setenv("API_PORT", "3000")

    return Settings()


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[pytest.MonkeyPatch]:
    """Remove application env vars so that defaults are observable.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    original_env = os.environ.copy()

    env_prefixes = [
        "APP_",
        "API_",
        "DEBUG",
        "DOCS_URL",
        "OPENAPI_URL",
        "SHUTDOWN_",
        "CORS_CONFIG__",
    ]
    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in env_prefixes):
            monkeypatch.delenv(key, raising=False)

    yield monkeypatch

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def clean_context() -> Generator[None]:
    """Clear RequestContext before and after each test."""
    RequestContext.clear()
    yield
    RequestContext.clear()


@pytest.fixture(autouse=True)
def quiet_logging() -> Generator[None]:
    """Keep log output out of test runs.

    Logging is marked as configured so that code calling ``setup_logging``
    does not add stdout sinks.
    """
    logger.remove()
    previous = _state.configured
    _state.configured = True
    yield
    logger.remove()
    _state.configured = previous


@pytest.fixture
def log_records() -> Generator[list[dict[str, Any]]]:
    """Collect Loguru records emitted during the test.

    Returns:
        list[dict[str, Any]]: Records with ``message``, ``level`` and ``extra``.
    """
    records: list[dict[str, Any]] = []

    def sink(message: Any) -> None:  # noqa: ANN401 - loguru message
        record = message.record
        records.append(
            {
                "message": record["message"],
                "level": record["level"].name,
                "extra": dict(record["extra"]),
            }
        )

    handler_id = logger.add(sink, level="DEBUG", format="{message}")
    yield records
    logger.remove(handler_id)
