"""FastAPI application assembly.

This module builds the request dispatcher:
- Loads the API description and refuses to build an application from a
  document that cannot be loaded or serialized
- Registers middleware: CORS policy, metrics collection, request context
  and request logging
- Serves the API description as JSON and the Swagger UI documentation page
- Mounts a route for every operation the description declares
- Registers exception handlers and tracing instrumentation

Middleware are executed in reverse order of registration: the last one
added is the first to see the request.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Response
from fastapi.openapi.docs import (
    get_swagger_ui_html,
    get_swagger_ui_oauth2_redirect_html,
)
from fastapi.responses import HTMLResponse
from loguru import logger

from src.api.constants import JSON_MEDIA_TYPE, OAUTH2_REDIRECT_SUFFIX
from src.api.handlers import build_operation_registry
from src.api.middleware.cors import CorsPolicyMiddleware
from src.api.middleware.error_handler import register_exception_handlers
from src.api.middleware.metrics import MetricsMiddleware
from src.api.middleware.request_context import RequestContextMiddleware
from src.api.middleware.request_logging import RequestLoggingMiddleware
from src.api.openapi import (
    ApiDescription,
    load_api_description,
    serialize_api_description,
)
from src.api.operations import OperationRegistry, mount_operations
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.logging import setup_logging
from src.core.observability import (
    instrument_app,
    setup_metrics,
    setup_tracing,
    shutdown_telemetry,
)


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Log application startup and flush telemetry on shutdown.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    logger.info("Application shutdown initiated")
    shutdown_telemetry(
        getattr(app_instance.state, "meter_provider", None),
        getattr(app_instance.state, "tracer_provider", None),
    )
    logger.info("Application shutdown complete")


def register_documentation_routes(
    application: FastAPI, description: ApiDescription, settings: Settings
) -> None:
    """Serve the API description and, when enabled, the Swagger UI.

    Args:
        application: Application receiving the routes.
        description: The document to serve.
        settings: Application settings providing the URLs.
    """
    openapi_url = settings.openapi_url

    async def openapi_schema() -> Response:
        # SchemaLoadError is turned into a 500 by the exception handlers
        return Response(
            content=serialize_api_description(description),
            media_type=JSON_MEDIA_TYPE,
        )

    application.add_api_route(
        openapi_url, openapi_schema, methods=["GET"], include_in_schema=False
    )

    docs_url = settings.docs_url
    if not docs_url:
        return

    oauth2_redirect_url = docs_url.rstrip("/") + OAUTH2_REDIRECT_SUFFIX

    async def swagger_ui() -> HTMLResponse:
        return get_swagger_ui_html(
            openapi_url=openapi_url,
            title=f"{description.info.title} - Swagger UI",
            oauth2_redirect_url=oauth2_redirect_url,
        )

    async def swagger_ui_oauth2_redirect() -> HTMLResponse:
        return get_swagger_ui_oauth2_redirect_html()

    application.add_api_route(
        docs_url, swagger_ui, methods=["GET"], include_in_schema=False
    )
    application.add_api_route(
        oauth2_redirect_url,
        swagger_ui_oauth2_redirect,
        methods=["GET"],
        include_in_schema=False,
    )


def create_app(
    settings: Settings | None = None,
    registry: OperationRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().
        registry: Operation handlers. Defaults to the handlers of this service.

    Returns:
        FastAPI: Configured FastAPI application instance.

    Raises:
        SchemaLoadError: If the API description cannot be loaded or serialized.
        OperationBindingError: If declared operations and handlers disagree.
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings)

    # Fail fast: the document must load and serialize before anything is served
    description = load_api_description(settings.api_description_path)
    serialize_api_description(description)

    tracer_provider = setup_tracing(settings)
    meter_provider = setup_metrics(settings)

    application = FastAPI(
        title=description.info.title,
        version=description.info.version,
        description=description.info.description or "",
        debug=settings.debug,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    application.state.api_description = description
    application.state.tracer_provider = tracer_provider
    application.state.meter_provider = meter_provider

    register_exception_handlers(application)

    # 4. Request logging middleware (logs requests/responses)
    application.add_middleware(RequestLoggingMiddleware, log_config=settings.log_config)

    # 3. Request context middleware (creates correlation ID)
    application.add_middleware(RequestContextMiddleware)

    # 2. Metrics middleware (records every request)
    application.add_middleware(
        MetricsMiddleware,
        excluded_paths=settings.observability_config.metrics_excluded_paths,
    )

    # 1. CORS middleware (answers preflight requests first)
    application.add_middleware(CorsPolicyMiddleware, cors_config=settings.cors_config)

    register_documentation_routes(application, description, settings)

    operations = mount_operations(
        APIRouter(),
        description,
        registry if registry is not None else build_operation_registry(),
        base_path=settings.api_base_path,
    )
    application.include_router(operations)

    instrument_app(application, settings)

    return application
