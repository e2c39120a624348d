"""Binding of declared API operations to handler functions.

Handlers are registered by ``operationId``; ``mount_operations`` walks the
API description and adds one route per declared operation. The two sides
must agree exactly: an operation without a handler, or a handler for an
operation the document does not declare, is a startup error.
"""

from collections.abc import Callable, Iterator
from typing import Any

from fastapi import APIRouter
from loguru import logger

from src.api.openapi import ApiDescription
from src.core.exceptions import OperationBindingError
from src.core.types import OperationHandler


class OperationRegistry:
    """Mapping of operation ids to handler callables.

    Handlers can be registered directly or with the decorator form::

        registry = OperationRegistry()

        @registry.register("welcomeMessage")
        async def welcome_message() -> PlainTextResponse: ...
    """

    def __init__(self) -> None:
        self._handlers: dict[str, OperationHandler] = {}

    def register(
        self, operation_id: str, handler: OperationHandler | None = None
    ) -> Any:  # noqa: ANN401 - handler or decorator
        """Register ``handler`` for ``operation_id``.

        Args:
            operation_id: The ``operationId`` declared in the API description.
            handler: Endpoint callable. When omitted a decorator is returned.

        Returns:
            The handler, or a decorator registering the decorated function.

        Raises:
            OperationBindingError: If the operation already has a handler.
        """
        if handler is None:

            def decorator(func: OperationHandler) -> OperationHandler:
                return self.register(operation_id, func)

            return decorator

        if operation_id in self._handlers:
            msg = f"Operation {operation_id} already has a handler"
            raise OperationBindingError(msg, context={"operation_id": operation_id})

        self._handlers[operation_id] = handler
        return handler

    def get(self, operation_id: str) -> OperationHandler | None:
        """Return the handler registered for ``operation_id``, if any."""
        return self._handlers.get(operation_id)

    @property
    def operation_ids(self) -> set[str]:
        """Operation ids that have a handler."""
        return set(self._handlers)

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


def _join_path(base_path: str, path: str) -> str:
    base = base_path.rstrip("/")
    return f"{base}{path}" if path != "/" or not base else base


def mount_operations(
    router: APIRouter,
    description: ApiDescription,
    registry: OperationRegistry,
    base_path: str = "/",
) -> APIRouter:
    """Bind every operation declared in ``description`` into ``router``.

    Args:
        router: Router receiving one route per operation.
        description: The API description declaring the operations.
        registry: Handlers keyed by operation id.
        base_path: Path prefix for all operations.

    Returns:
        APIRouter: The router that was passed in.

    Raises:
        OperationBindingError: If an operation has no handler or a handler is
            registered for an undeclared operation.
    """
    declared = {operation.operation_id for _, _, operation in description.operations()}

    missing = sorted(declared - registry.operation_ids)
    if missing:
        msg = f"No handler registered for operations: {', '.join(missing)}"
        raise OperationBindingError(msg, context={"operation_ids": missing})

    undeclared = sorted(registry.operation_ids - declared)
    if undeclared:
        msg = f"Handlers registered for undeclared operations: {', '.join(undeclared)}"
        raise OperationBindingError(msg, context={"operation_ids": undeclared})

    for path, method, operation in description.operations():
        handler: Callable[..., Any] | None = registry.get(operation.operation_id)
        route_path = _join_path(base_path, path)
        router.add_api_route(
            route_path,
            handler,  # type: ignore[arg-type]
            methods=[method.upper()],
            operation_id=operation.operation_id,
            summary=operation.summary,
            description=operation.description or "",
            tags=list(operation.tags),
        )
        logger.debug(
            "Bound operation {} to {} {}",
            operation.operation_id,
            method.upper(),
            route_path,
        )

    return router
