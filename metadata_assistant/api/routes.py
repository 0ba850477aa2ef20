"""
FastAPI route handlers for the Metadata Assistant REST API.
"""

import json
import logging
import time
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse

from ..models.chat import ToolCall
from ..models.errors import ErrorResponse, SessionError
from ..services.session import EditingSession
from ..utils.error_handler import create_error_response
from .models import (
    ChangesResponse, ChatRequest, CommitRequest, HealthResponse, LoadRequest, LoadResponse,
    MetadataResponse, ProposeRequest,
)

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

STATUS_BY_ERROR_TYPE = {
    "path": 400,
    "validation": 422,
    "tool": 400,
    "session": 409,
    "llm": 502,
    "network": 502,
    "configuration": 500,
}


def error_status(error: ErrorResponse) -> int:
    if error.error_code == "DANDISET_NOT_FOUND":
        return 404
    if error.error_code == "INTERNAL_ERROR":
        return 500
    return STATUS_BY_ERROR_TYPE.get(error.error_type, 500)


def error_json(error: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=error_status(error), content=create_error_response(error))


def get_session(request: Request) -> EditingSession:
    return request.app.state.session


async def health_check(request: Request):
    """Health check endpoint."""
    session = get_session(request)
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        uptime=time.time() - request.app.state.start_time,
        loaded=session.is_loaded,
        pending_changes=len(session.changeset),
        chat_state=session.chat_state,
    )


async def load_dandiset(request: Request, body: LoadRequest):
    """Load a dandiset version, discarding pending changes."""
    session = get_session(request)
    info = await session.load(body.dandiset_id, body.version, body.api_key)
    return LoadResponse(
        dandiset_id=body.dandiset_id,
        version=body.version,
        name=info.name,
        status=info.status,
        metadata=session.base_document,
    )


async def get_metadata(request: Request):
    """Return the base and effective metadata."""
    session = get_session(request)
    return MetadataResponse(
        dandiset_id=session.dandiset_id,
        version=session.version,
        original=session.base_document,
        effective=session.effective_document(),
        pending_changes=len(session.changeset),
    )


async def list_changes(request: Request):
    """List pending changes."""
    changeset = get_session(request).changeset
    return ChangesResponse(count=len(changeset), changes=changeset.to_wire(), summary=changeset.summary_lines())


async def propose_change(request: Request, body: ProposeRequest):
    """Stage a manual edit after the same checks an assistant proposal gets."""
    session = get_session(request)
    if not session.is_loaded:
        return error_json(SessionError(error_code="NO_DOCUMENT", message="No dandiset is loaded"))

    arguments = body.model_dump(by_alias=True, exclude_unset=True)
    call = ToolCall(
        id=f"api_{uuid.uuid4().hex[:12]}",
        function_name="propose_metadata_change",
        arguments_json=json.dumps(arguments),
    )
    result = await session.executor.execute(call)
    content = json.loads(result.to_content())
    return JSONResponse(status_code=200 if result.success else 422, content=content)


async def clear_changes(request: Request):
    """Discard all pending changes."""
    session = get_session(request)
    count = len(session.changeset)
    session.clear_changes()
    return {"message": f"Discarded {count} pending change(s)", "count": count}


async def revert_change(request: Request, path: str):
    """Revert the pending change for one path."""
    session = get_session(request)
    removed = session.revert_change(path)
    if not removed:
        return error_json(SessionError(error_code="NO_PENDING_CHANGE", message=f"No pending change for '{path}'"))
    return {
        "message": f"Reverted pending change for '{path}'",
        "reverted": [str(change.path) for change in removed],
        "remaining": len(session.changeset),
    }


async def chat(request: Request, body: ChatRequest):
    """Run one assistant turn."""
    session = get_session(request)
    result = await session.chat(body.message)
    content = result.model_dump(mode="json", exclude_none=True)
    if result.error is not None:
        return JSONResponse(status_code=error_status(result.error), content=content)
    return content


async def acknowledge_chat_error(request: Request):
    """Clear the chat error state so a new message can be sent."""
    error = get_session(request).acknowledge_chat_error()
    return {"acknowledged": error.model_dump(exclude_none=True) if error else None}


async def get_transcript(request: Request):
    """Return the chat transcript and accumulated token usage."""
    transcript = get_session(request).transcript
    return transcript.model_dump(mode="json", exclude_none=True)


async def validate_metadata(request: Request):
    """Validate the effective metadata."""
    return get_session(request).validate().to_wire()


async def commit_changes(request: Request, body: CommitRequest):
    """Commit pending changes to the archive."""
    outcome = await get_session(request).commit(body.api_key)
    if not outcome.success:
        return error_json(outcome.error)
    return outcome.model_dump(mode="json", exclude_none=True)


async def reset_session(request: Request):
    """Discard pending changes and the chat."""
    get_session(request).reset()
    return {"message": "Session reset"}


async def root():
    """Root endpoint with API information."""
    return {
        "name": "Dandiset Metadata Assistant API",
        "version": API_VERSION,
        "endpoints": {
            "GET /health": "Health check",
            "POST /session/load": "Load a dandiset version",
            "GET /session/metadata": "Original and effective metadata",
            "GET /session/changes": "Pending changes",
            "POST /session/changes": "Propose a manual change",
            "DELETE /session/changes": "Discard all pending changes",
            "DELETE /session/changes/{path}": "Revert one pending change",
            "POST /session/chat": "Send a message to the assistant",
            "POST /session/chat/acknowledge": "Acknowledge a failed chat turn",
            "GET /session/transcript": "Chat transcript",
            "POST /session/validate": "Validate the effective metadata",
            "POST /session/commit": "Commit pending changes",
            "POST /session/reset": "Discard pending changes and chat",
        },
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc",
        },
    }
