"""Unit tests for src/api/middleware/request_logging.py."""

import itertools
from typing import Any

import pytest
from pytest_mock import MockerFixture
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from src.api.constants import REQUEST_ID_HEADER
from src.api.middleware.request_logging import RequestLoggingMiddleware
from src.core.config import LogConfig
from src.core.context import RequestContext


def make_request(
    path: str = "/", headers: dict[str, str] | None = None, query: bytes = b""
) -> Request:
    """Build a GET request from a loopback client."""
    raw_headers = [
        (key.lower().encode("latin-1"), value.encode("latin-1"))
        for key, value in (headers or {}).items()
    ]
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": path,
            "query_string": query,
            "headers": raw_headers,
            "client": ("127.0.0.1", 50000),
        }
    )


async def ok(request: Request) -> Response:
    """Endpoint answering 200."""
    _ = request
    return PlainTextResponse("ok")


def messages(log_records: list[dict[str, Any]]) -> list[str]:
    """Messages of the collected records."""
    return [record["message"] for record in log_records]


@pytest.mark.unit
class TestRequestLoggingMiddleware:
    """Test suite for RequestLoggingMiddleware."""

    async def test_logs_start_and_completion(
        self, mocker: MockerFixture, log_records: list[dict[str, Any]]
    ) -> None:
        """Each request logs a start and a completion line with context."""
        middleware = RequestLoggingMiddleware(mocker.AsyncMock(), log_config=LogConfig())

        response = await middleware.dispatch(make_request(query=b"a=1"), ok)

        assert response.status_code == 200
        assert messages(log_records) == ["Request started", "Request completed"]
        started, completed = log_records
        assert started["extra"]["query_params"] == {"a": "1"}
        assert started["extra"]["client_host"] == "127.0.0.1"
        assert completed["extra"]["status_code"] == 200
        assert completed["extra"]["method"] == "GET"
        assert "duration_ms" in completed["extra"]

    async def test_generates_request_id(self, mocker: MockerFixture) -> None:
        """A request id is generated, stored and returned."""
        middleware = RequestLoggingMiddleware(mocker.AsyncMock(), log_config=LogConfig())

        response = await middleware.dispatch(make_request(), ok)

        request_id = response.headers[REQUEST_ID_HEADER]
        assert request_id.startswith("req-")
        assert RequestContext.get_request_id() == request_id

    async def test_keeps_incoming_request_id(self, mocker: MockerFixture) -> None:
        """An incoming request id is reused."""
        middleware = RequestLoggingMiddleware(mocker.AsyncMock(), log_config=LogConfig())

        response = await middleware.dispatch(
            make_request(headers={REQUEST_ID_HEADER: "req-upstream"}), ok
        )

        assert response.headers[REQUEST_ID_HEADER] == "req-upstream"

    async def test_logs_failure_and_reraises(
        self, mocker: MockerFixture, log_records: list[dict[str, Any]]
    ) -> None:
        """Failures are logged and propagated."""
        middleware = RequestLoggingMiddleware(mocker.AsyncMock(), log_config=LogConfig())

        async def failing(request: Request) -> Response:
            _ = request
            msg = "boom"
            raise RuntimeError(msg)

        with pytest.raises(RuntimeError, match="boom"):
            await middleware.dispatch(make_request(), failing)

        failed = log_records[-1]
        assert failed["message"] == "Request failed"
        assert failed["level"] == "ERROR"
        assert failed["extra"]["error_type"] == "RuntimeError"

    async def test_slow_request_warning(
        self, mocker: MockerFixture, log_records: list[dict[str, Any]]
    ) -> None:
        """Requests above the threshold produce a warning."""
        middleware = RequestLoggingMiddleware(
            mocker.AsyncMock(), log_config=LogConfig(slow_request_threshold_ms=1)
        )
        mocker.patch(
            "src.api.middleware.request_logging.time.perf_counter",
            side_effect=itertools.chain([0.0], itertools.repeat(0.5)),
        )

        await middleware.dispatch(make_request(), ok)

        warning = log_records[-1]
        assert warning["message"] == "Slow request detected"
        assert warning["level"] == "WARNING"
        assert warning["extra"]["duration_ms"] == 500.0

    async def test_excluded_paths_not_logged(
        self, mocker: MockerFixture, log_records: list[dict[str, Any]]
    ) -> None:
        """Configured paths pass through silently."""
        middleware = RequestLoggingMiddleware(
            mocker.AsyncMock(), log_config=LogConfig(excluded_paths=["/docs"])
        )

        response = await middleware.dispatch(make_request("/docs"), ok)

        assert response.status_code == 200
        assert log_records == []
        assert REQUEST_ID_HEADER not in response.headers
