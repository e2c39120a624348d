"""Type aliases shared across the application."""

from collections.abc import Awaitable, Callable
from typing import Any

# Endpoint callable bound to a declared API operation
type OperationHandler = Callable[..., Awaitable[Any]] | Callable[..., Any]

# Attributes attached to metric data points
type MetricAttributes = dict[str, str | int]
