"""
Metadata Assistant REST API Server
Minimal entry point for the REST API.
"""

import asyncio
import logging
import os

import uvicorn

from metadata_assistant.api import create_app
from metadata_assistant.config import load_config
from metadata_assistant.utils.logging_config import setup_logging


async def main():
    """Main entry point for the Metadata Assistant REST API server."""
    config = load_config()
    setup_logging(config.log_level, config.log_file, config.json_logging)

    logger = logging.getLogger(__name__)
    logger.info("Starting Metadata Assistant REST API server...")

    app = create_app(config)

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    server_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=config.log_level.lower(),
        reload=False
    )

    server = uvicorn.Server(server_config)

    try:
        logger.info(f"Server starting on http://{host}:{port}")
        await server.serve()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise


if __name__ == "__main__":
    asyncio.run(main())
