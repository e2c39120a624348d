"""Core infrastructure package for shared application functionality.

- **config**: Settings loaded from the environment
- **context**: Request context and correlation ID management
- **exceptions**: Structured exception hierarchy with error codes
- **logging**: Structured logging with loguru
- **observability**: Metrics and tracing with OpenTelemetry
- **types**: Type aliases for better code clarity
"""
