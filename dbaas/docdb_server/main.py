"""
DocDB Server - Main entry point.

This module starts the DocDB HTTP server:
- Loads and validates configuration
- Configures logging
- Serves the FastAPI app with uvicorn (signals and graceful shutdown
  are handled by uvicorn; the app lifespan closes the store)

Usage:
    python -m dbaas.docdb_server.main

Configuration is entirely via environment variables.
See config.py and api/config.py for all available settings.

Invariants:
    - Invalid configuration exits with status 1 before anything is opened
    - One document store connection is shared by all requests

How to change safely:
    - Keep store setup inside the app lifespan, not here
    - Test shutdown with an in-flight request before changing servers
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import Settings, create_app
from .config import ServerConfig

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
        settings = Settings()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    app = create_app(settings=settings, config=config)

    logger.info(f"Starting DocDB server on {settings.bind_address}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
