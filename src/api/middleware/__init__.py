"""Middleware for cross-cutting request/response concerns.

- **CorsPolicyMiddleware**: Applies the configured CORS policy
- **MetricsMiddleware**: Records request metrics for every request
- **RequestContextMiddleware**: Manages correlation IDs
- **RequestLoggingMiddleware**: Structured request logging with timing
- **error_handler**: Exception handlers producing ``ErrorResponse`` bodies

Registration order in ``create_app`` makes CORS the outermost layer, so
preflight requests are answered before any other middleware runs:
1. CORS policy
2. Metrics collection
3. Request context (correlation IDs)
4. Request logging
"""
