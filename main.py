"""Main entry point for running the REST API server."""

import asyncio

from loguru import logger

from src.api.main import create_app
from src.api.server import run_server
from src.core.config import get_settings
from src.core.exceptions import OperationBindingError, SchemaLoadError
from src.core.logging import setup_logging


def main() -> None:
    """Serve the API until interrupted.

    Exits with a non-zero status when the API description cannot be loaded
    and lets ``ServerError`` propagate when the listener fails.
    """
    settings = get_settings()

    # Setup logging first
    setup_logging(settings)

    try:
        app = create_app(settings)
    except (SchemaLoadError, OperationBindingError) as exc:
        logger.critical(
            "Cannot start: {}",
            exc.message,
            error_code=exc.error_code,
            error_context=exc.context,
        )
        msg = f"Error loading API description: {exc}"
        raise SystemExit(msg) from exc

    asyncio.run(run_server(app, settings))


if __name__ == "__main__":
    main()
