"""
FastAPI application factory and configuration.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..config.loader import load_config
from ..config.models import AssistantConfig
from ..models.errors import MetadataAssistantException
from ..services.session import EditingSession
from ..utils.error_handler import handle_error
from . import routes
from .models import ChangesResponse, HealthResponse, LoadResponse, MetadataResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Metadata Assistant REST API started")
    yield
    await app.state.session.aclose()
    logger.info("Metadata Assistant REST API stopped")


async def assistant_exception_handler(request: Request, exc: MetadataAssistantException):
    """Render known exceptions as the standard error envelope."""
    error = handle_error(exc)
    logger.warning(f"{request.method} {request.url.path} failed: {error.error_code}: {error.message}")
    return routes.error_json(error)


def create_app(config: Optional[AssistantConfig] = None, session: Optional[EditingSession] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Assistant configuration, loaded from config.yaml/.env when omitted
        session: Editing session to serve, created from the config when omitted
    """
    if session is None:
        session = EditingSession(config or load_config())

    app = FastAPI(
        title="Dandiset Metadata Assistant API",
        description="Review, edit and commit DANDI dandiset metadata with an AI assistant",
        version=routes.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.session = session
    app.state.start_time = time.time()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(MetadataAssistantException, assistant_exception_handler)

    app.add_api_route("/health", routes.health_check, methods=["GET"], response_model=HealthResponse)
    app.add_api_route("/session/load", routes.load_dandiset, methods=["POST"], response_model=LoadResponse)
    app.add_api_route("/session/metadata", routes.get_metadata, methods=["GET"], response_model=MetadataResponse)
    app.add_api_route("/session/changes", routes.list_changes, methods=["GET"], response_model=ChangesResponse)
    app.add_api_route("/session/changes", routes.propose_change, methods=["POST"])
    app.add_api_route("/session/changes", routes.clear_changes, methods=["DELETE"])
    app.add_api_route("/session/changes/{path}", routes.revert_change, methods=["DELETE"])
    app.add_api_route("/session/chat", routes.chat, methods=["POST"])
    app.add_api_route("/session/chat/acknowledge", routes.acknowledge_chat_error, methods=["POST"])
    app.add_api_route("/session/transcript", routes.get_transcript, methods=["GET"])
    app.add_api_route("/session/validate", routes.validate_metadata, methods=["POST"])
    app.add_api_route("/session/commit", routes.commit_changes, methods=["POST"])
    app.add_api_route("/session/reset", routes.reset_session, methods=["POST"])
    app.add_api_route("/", routes.root, methods=["GET"])

    return app
