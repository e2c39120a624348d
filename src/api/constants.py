"""API-related constants."""

# HTTP Headers
CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Methods an OpenAPI path item may declare operations for
OPENAPI_HTTP_METHODS = (
    "get",
    "put",
    "post",
    "delete",
    "options",
    "head",
    "patch",
    "trace",
)

# Content types
JSON_MEDIA_TYPE = "application/json"

# Swagger UI asset page, relative to the documentation URL
OAUTH2_REDIRECT_SUFFIX = "/oauth2-redirect"
