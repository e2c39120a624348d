"""REST API template service.

A minimal HTTP service scaffold: it serves a single welcome operation, the
OpenAPI description of the API, and a Swagger UI page rendering it.

Architecture Overview:
- **API Layer**: FastAPI application assembly, middleware, operation
  bindings and the HTTP server lifecycle
- **Core Layer**: Configuration, logging, exceptions, request context and
  telemetry shared by the API layer

New operations are added by declaring them in the bundled OpenAPI document
and registering a handler for their ``operationId``.
"""
