"""Error categorization for the Metadata Assistant.

Every surface (orchestrator, REST, MCP) reports failures as ErrorResponse
models built here rather than letting exceptions escape.
"""

import asyncio
import json
import logging
import time
import uuid
from typing import Any, Dict

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from ..config.loader import ConfigurationError
from ..models.errors import (
    ErrorResponse, PathError, ValidationError, LLMError, NetworkError, ToolError, SessionError,
    MetadataAssistantException, PathException, ValidationFailedException, LLMException,
    NetworkException, ToolException, SessionException,
)

logger = logging.getLogger(__name__)


class ErrorHandler:
    """Maps exceptions to ErrorResponse models."""

    def categorize_error(self, error: BaseException) -> ErrorResponse:
        """Categorize an exception into the appropriate error response."""
        if isinstance(error, MetadataAssistantException):
            return self._handle_assistant_exception(error)

        if isinstance(error, PydanticValidationError):
            return self._handle_pydantic_validation_error(error)

        if isinstance(error, ConfigurationError):
            return ErrorResponse(
                error_type="configuration",
                error_code="CONFIGURATION_ERROR",
                message=str(error),
                suggestions=["Check config.yaml and the environment variables it references"],
            )

        if isinstance(error, json.JSONDecodeError):
            return self._handle_json_parsing_error(error)

        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return self._handle_timeout_error(error)

        if self._is_network_error(error):
            return self._handle_network_error(error)

        return self._handle_generic_error(error)

    def _handle_assistant_exception(self, error: MetadataAssistantException) -> ErrorResponse:
        """Handle known Metadata Assistant exceptions."""
        details = error.details or {}

        if isinstance(error, PathException):
            return PathError(
                error_code=error.error_code,
                message=error.message,
                details=details,
                path=details.get("path"),
                suggestions=["Use dot-separated paths such as 'contributor.0.name'"],
            )

        if isinstance(error, ValidationFailedException):
            return ValidationError(
                error_code=error.error_code,
                message=error.message,
                details=details,
                field_errors=details.get("field_errors"),
            )

        if isinstance(error, NetworkException):
            return NetworkError(
                error_code=error.error_code,
                message=error.message,
                details=details,
                url=details.get("url"),
                status=details.get("status"),
                suggestions=["Check network connectivity and retry"],
            )

        if isinstance(error, LLMException):
            return LLMError(
                error_code=error.error_code,
                message=error.message,
                details=details,
                provider=details.get("provider"),
                suggestions=["Check the API key and model name, then resubmit the message"],
            )

        if isinstance(error, ToolException):
            return ToolError(
                error_code=error.error_code,
                message=error.message,
                details=details,
                tool_name=details.get("tool_name"),
            )

        if isinstance(error, SessionException):
            return SessionError(
                error_code=error.error_code,
                message=error.message,
                details=details,
            )

        return ErrorResponse(
            error_type=error.error_type,
            error_code=error.error_code,
            message=error.message,
            details=details,
        )

    def _handle_pydantic_validation_error(self, error: PydanticValidationError) -> ValidationError:
        """Handle Pydantic validation errors."""
        field_errors: Dict[str, list] = {}
        for err in error.errors():
            field_path = ".".join(str(loc) for loc in err['loc']) or "(root)"
            field_errors.setdefault(field_path, []).append(err['msg'])

        return ValidationError(
            error_code="INVALID_REQUEST",
            message="Request validation failed",
            details={"error_count": error.error_count()},
            field_errors=field_errors,
            suggestions=[
                "Check the request format and ensure all required fields are provided",
                "Verify that field types match the expected schema",
            ],
        )

    def _handle_json_parsing_error(self, error: json.JSONDecodeError) -> ValidationError:
        """Handle JSON parsing errors."""
        return ValidationError(
            error_code="INVALID_JSON",
            message=f"Invalid JSON: {error.msg} (line {error.lineno}, column {error.colno})",
            details={"original_error": str(error)},
        )

    def _handle_network_error(self, error: BaseException) -> NetworkError:
        """Handle network-related errors raised by HTTP client libraries."""
        return NetworkError(
            error_code="NETWORK_ERROR",
            message=f"Network error occurred: {error}",
            details={"original_error": str(error), "error_class": type(error).__name__},
            suggestions=[
                "Check network connectivity",
                "Verify the endpoint is reachable",
            ],
        )

    def _handle_timeout_error(self, error: BaseException) -> NetworkError:
        """Handle timeout errors."""
        return NetworkError(
            error_code="TIMEOUT",
            message=f"Operation timed out: {error}" if str(error) else "Operation timed out",
            details={"original_error": str(error)},
            suggestions=["Retry the operation", "Increase the configured timeout"],
        )

    def _handle_generic_error(self, error: BaseException) -> ErrorResponse:
        """Handle unexpected exceptions."""
        error_id = f"err_{int(time.time())}_{uuid.uuid4().hex[:6]}"
        logger.error(f"Unhandled error [{error_id}]: {type(error).__name__}: {error}", exc_info=error)

        return SessionError(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred",
            details={
                "error_id": error_id,
                "error_class": type(error).__name__,
                "original_error": str(error),
            },
            suggestions=[
                "Retry the operation",
                f"Reference error ID: {error_id}",
            ],
        )

    def _is_network_error(self, error: BaseException) -> bool:
        """Check if error is network-related."""
        if isinstance(error, (aiohttp.ClientError, ConnectionError)):
            return True

        network_error_types = [
            "ConnectionError", "ConnectTimeout", "ReadTimeout",
            "HTTPError", "RequestError", "APIConnectionError",
        ]
        error_type = type(error).__name__
        return any(net_err in error_type for net_err in network_error_types)


default_error_handler = ErrorHandler()


def handle_error(error: BaseException) -> ErrorResponse:
    """Convenience function to categorize errors with the default handler."""
    return default_error_handler.categorize_error(error)


def create_error_response(error: ErrorResponse) -> Dict[str, Any]:
    """Wrap an ErrorResponse in the standard ``{"error", "status"}`` envelope."""
    return {
        "error": error.model_dump(exclude_none=True),
        "status": "error",
    }
