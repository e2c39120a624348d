"""Shared fixtures for integration tests."""

import json
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from loguru import logger
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from src.api.main import create_app
from src.core.config import Settings, get_settings
from src.core.context import RequestContext
from src.core.logging import _state

AppClientFactory = Callable[[FastAPI], Awaitable[AsyncClient]]


@pytest.fixture
def app() -> FastAPI:
    """Application built from the current environment."""
    return create_app()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """In-process HTTP client for ``app``."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def client_factory() -> AsyncGenerator[AppClientFactory]:
    """Factory creating clients for custom application instances.

    Usage:
        async def test_something(client_factory):
            client = await client_factory(create_app(settings))
    """
    clients: list[AsyncClient] = []

    async def _create_client(application: FastAPI) -> AsyncClient:
        transport = ASGITransport(app=application, raise_app_exceptions=False)
        new_client = AsyncClient(transport=transport, base_url="http://test")
        clients.append(new_client)
        return new_client

    yield _create_client

    for created in clients:
        await created.aclose()


@pytest.fixture
def description_file(tmp_path: Path) -> Callable[[dict[str, object]], Path]:
    """Write API description documents to a temporary directory."""

    def _write(paths: dict[str, object]) -> Path:
        path = tmp_path / "openapi.json"
        path.write_text(
            json.dumps(
                {
                    "openapi": "3.0.3",
                    "info": {"title": "Test API", "version": "1.0.0"},
                    "paths": paths,
                }
            )
        )
        return path

    return _write


@pytest.fixture
def server_settings() -> Settings:
    """Settings for a real listener on an ephemeral loopback port."""
    return Settings(api_host="127.0.0.1", api_port=0, shutdown_timeout_seconds=2)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_request_context() -> Generator[None]:
    """Clear RequestContext before and after each test."""
    RequestContext.clear()
    yield
    RequestContext.clear()


@pytest.fixture(autouse=True)
def reset_logging_and_tracing_state() -> Generator[None]:
    """Reset logging and tracing state before each test.

    Logging stays marked as configured so that building an application does
    not add stdout sinks, and FastAPI instrumentation is removed so that
    every application can be instrumented again.
    """
    logger.remove()
    get_settings.cache_clear()
    _state.configured = True

    if FastAPIInstrumentor().is_instrumented_by_opentelemetry:
        FastAPIInstrumentor().uninstrument()

    yield

    logger.remove()
