"""Handlers for the operations declared in the bundled API description."""

from fastapi.responses import PlainTextResponse

from src.api.operations import OperationRegistry

WELCOME_MESSAGE = "Welcome to the REST API"


async def welcome_message() -> PlainTextResponse:
    """Return the static greeting, whatever the request carries."""
    return PlainTextResponse(WELCOME_MESSAGE)


def build_operation_registry() -> OperationRegistry:
    """Create the registry binding every declared operation to its handler.

    Returns:
        OperationRegistry: Handlers keyed by operation id.
    """
    registry = OperationRegistry()
    registry.register("welcomeMessage", welcome_message)
    return registry
