"""HTTP API layer built on FastAPI.

Key components:
- **main**: Application factory and documentation routes
- **server**: Listener lifecycle with signal-driven graceful shutdown
- **openapi**: Loading and serializing the bundled API description
- **operations**: Handler registry and route mounting per ``operationId``
- **handlers**: Operation handlers of this service
- **middleware**: Cross-cutting concerns for all requests
  - CORS policy
  - Request metrics
  - Request context with correlation ID tracking
  - Structured request logging
  - Centralized error handling with consistent responses
- **schemas**: Error response models
- **utils**: orjson-backed JSON responses
"""
