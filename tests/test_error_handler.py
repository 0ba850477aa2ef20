"""Tests for exception categorization."""

import asyncio

import aiohttp
import pytest
from pydantic import BaseModel

from metadata_assistant.config.loader import ConfigurationError
from metadata_assistant.models.errors import (
    LLMError, MalformedPathException, NetworkError, NetworkException, PathError, SessionError,
    ToolRegistrationException, ValidationError, ValidationFailedException,
)
from metadata_assistant.utils.error_handler import create_error_response, handle_error


class Sample(BaseModel):
    count: int


def test_path_exception():
    error = handle_error(MalformedPathException("a..b", "empty segment at position 1"))
    assert isinstance(error, PathError)
    assert error.error_code == "MALFORMED_PATH"
    assert error.path == "a..b"


def test_network_exception_keeps_status():
    error = handle_error(NetworkException("ARCHIVE_HTTP_ERROR", "HTTP 503", {"url": "https://x", "status": 503}))
    assert isinstance(error, NetworkError)
    assert (error.url, error.status) == ("https://x", 503)


def test_validation_exception():
    error = handle_error(ValidationFailedException("INVALID", "bad", {"field_errors": {"/name": ["empty"]}}))
    assert isinstance(error, ValidationError)
    assert error.field_errors == {"/name": ["empty"]}


def test_tool_exception():
    error = handle_error(ToolRegistrationException("DUPLICATE_TOOL", "taken", {"tool_name": "echo"}))
    assert error.error_type == "tool"
    assert error.tool_name == "echo"


def test_pydantic_error():
    with pytest.raises(Exception) as exc_info:
        Sample(count="many")
    error = handle_error(exc_info.value)
    assert isinstance(error, ValidationError)
    assert error.error_code == "INVALID_REQUEST"
    assert "count" in error.field_errors


def test_configuration_error():
    error = handle_error(ConfigurationError("bad config"))
    assert error.error_type == "configuration"


@pytest.mark.parametrize("exc, code", [
    (asyncio.TimeoutError(), "TIMEOUT"),
    (aiohttp.ClientConnectionError("refused"), "NETWORK_ERROR"),
    (ConnectionResetError("reset"), "NETWORK_ERROR"),
])
def test_network_failures(exc, code):
    error = handle_error(exc)
    assert error.error_type == "network"
    assert error.error_code == code


def test_unexpected_error():
    error = handle_error(KeyError("missing"))
    assert isinstance(error, SessionError)
    assert error.error_code == "INTERNAL_ERROR"
    assert error.details["error_class"] == "KeyError"
    assert error.details["error_id"].startswith("err_")


def test_error_codes_are_normalized():
    assert LLMError(error_code=" provider_error ", message="x").error_code == "PROVIDER_ERROR"
    with pytest.raises(ValueError):
        SessionError(error_code="X", message="  ")


def test_error_envelope():
    envelope = create_error_response(SessionError(error_code="NO_CHANGES", message="Nothing to commit"))
    assert envelope == {
        "status": "error",
        "error": {"error_type": "session", "error_code": "NO_CHANGES", "message": "Nothing to commit"},
    }
