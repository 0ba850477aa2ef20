"""Console entry point: serve one editing session over MCP stdio."""

import asyncio
import sys
from typing import Optional

import structlog

from .config.loader import load_config
from .server import MCPServer
from .utils.logging_config import setup_logging


def configure_structlog() -> None:
    """Render structlog events as JSON through the stdlib handlers."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_server(config_path: Optional[str] = None) -> MCPServer:
    """Load the configuration, set up logging at its level and create the server.

    Raises:
        ConfigurationError: If the configuration cannot be loaded
    """
    config = load_config(config_path)
    logging_state = setup_logging(config.log_level, config.log_file, config.json_logging)
    configure_structlog()
    return MCPServer(config, error_tracker=logging_state["error_tracker"])


async def serve(config_path: Optional[str] = None) -> None:
    server = build_server(config_path)
    logger = structlog.get_logger(__name__)
    logger.info(
        "Starting Metadata Assistant MCP server",
        log_level=server.config.log_level,
        archive=server.config.archive_config.instance,
    )
    await server.run_stdio()


def run() -> None:
    """Console script entry point, optionally taking a config file path."""
    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        asyncio.run(serve(config_path))
    except KeyboardInterrupt:
        structlog.get_logger(__name__).info("Server shutdown requested")


if __name__ == "__main__":
    run()
