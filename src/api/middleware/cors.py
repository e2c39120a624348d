"""CORS policy middleware configured from ``CorsConfig``."""

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp

from src.core.config import CorsConfig


class CorsPolicyMiddleware(CORSMiddleware):
    """Starlette's CORS middleware driven by the application CORS policy.

    Wildcard origins such as ``https://*`` are compiled into an origin
    regex, so allowed origins are echoed back individually rather than
    answered with ``*``.

    Args:
        app: The ASGI application.
        cors_config: The CORS policy to enforce.
    """

    def __init__(self, app: ASGIApp, *, cors_config: CorsConfig) -> None:
        self.cors_config = cors_config
        super().__init__(
            app,
            allow_origins=(),
            allow_origin_regex=cors_config.origin_regex(),
            allow_methods=cors_config.allowed_methods,
            allow_headers=cors_config.allowed_headers,
            expose_headers=cors_config.exposed_headers,
            allow_credentials=cors_config.allow_credentials,
            max_age=cors_config.max_age,
        )
