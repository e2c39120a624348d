"""Request metrics collection middleware.

Records request count, duration, failures and in-flight requests for every
request on the OpenTelemetry instruments in ``src.core.observability``. The
middleware never alters the request or the response.
"""

import time
from collections.abc import Awaitable, Callable, Iterable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Route
from starlette.types import ASGIApp

from src.core import observability
from src.core.constants import MILLISECONDS_PER_SECOND


class MetricsMiddleware(BaseHTTPMiddleware):
    """Pass-through middleware recording HTTP request metrics.

    Args:
        app: The ASGI application.
        excluded_paths: Paths that are not recorded. Empty by default, so
            every request is measured.
    """

    def __init__(self, app: ASGIApp, *, excluded_paths: Iterable[str] = ()) -> None:
        super().__init__(app)
        self.excluded_paths = set(excluded_paths)

    @staticmethod
    def _route_template(request: Request) -> str:
        """Use the matched route template to keep attribute cardinality bounded."""
        route = request.scope.get("route")
        if isinstance(route, Route):
            return route.path
        return request.url.path

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Measure the request and record it once a response is available.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: The unmodified response.
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        method = request.method
        observability.active_requests.add(1, {"http.method": method})
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            observability.record_failure(
                method, self._route_template(request), type(exc).__name__
            )
            raise
        else:
            duration_ms = (time.perf_counter() - start_time) * MILLISECONDS_PER_SECOND
            observability.record_request(
                method,
                self._route_template(request),
                response.status_code,
                round(duration_ms, 2),
            )
            return response
        finally:
            observability.active_requests.add(-1, {"http.method": method})
