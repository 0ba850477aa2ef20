"""Error models for the Metadata Assistant."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error_type: str = Field(..., description="Category of error (path, validation, llm, network, tool, session, configuration)")
    error_code: str = Field(..., description="Specific error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error details")
    suggestions: Optional[List[str]] = Field(default=None, description="Suggested actions to resolve the error")

    @field_validator('error_type')
    @classmethod
    def validate_error_type(cls, v):
        """Ensure error type is one of the allowed categories."""
        allowed_types = ["path", "validation", "llm", "network", "tool", "session", "configuration"]
        if v not in allowed_types:
            raise ValueError(f"Error type must be one of: {', '.join(allowed_types)}")
        return v

    @field_validator('error_code')
    @classmethod
    def validate_error_code(cls, v):
        """Ensure error code is not empty."""
        if not v or not v.strip():
            raise ValueError("Error code cannot be empty")
        return v.strip().upper()

    @field_validator('message')
    @classmethod
    def validate_message(cls, v):
        """Ensure message is not empty."""
        if not v or not v.strip():
            raise ValueError("Error message cannot be empty")
        return v.strip()


class PathError(ErrorResponse):
    """Error model for unparseable paths or paths crossing the wrong container kind."""

    error_type: str = Field(default="path", description="Error type is always path")
    path: Optional[str] = Field(default=None, description="Path expression that failed")


class ValidationError(ErrorResponse):
    """Error model for rejected candidate documents."""

    error_type: str = Field(default="validation", description="Error type is always validation")
    field_errors: Optional[Dict[str, List[str]]] = Field(
        default=None,
        description="Field-specific validation errors"
    )


class LLMError(ErrorResponse):
    """Error model for completion provider failures."""

    error_type: str = Field(default="llm", description="Error type is always llm")
    provider: Optional[str] = Field(default=None, description="Completion provider that failed")


class NetworkError(ErrorResponse):
    """Error model for unreachable endpoints and non-2xx responses."""

    error_type: str = Field(default="network", description="Error type is always network")
    url: Optional[str] = Field(default=None, description="Endpoint that failed")
    status: Optional[int] = Field(default=None, description="HTTP status, when a response was received")


class ToolError(ErrorResponse):
    """Error model for tool dispatch and execution failures."""

    error_type: str = Field(default="tool", description="Error type is always tool")
    tool_name: Optional[str] = Field(default=None, description="Tool that failed")


class SessionError(ErrorResponse):
    """Error model for editing session failures."""

    error_type: str = Field(default="session", description="Error type is always session")


# Exception classes for raising errors
class MetadataAssistantException(Exception):
    """Base exception for the Metadata Assistant."""

    error_type = "session"

    def __init__(self, error_code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class PathException(MetadataAssistantException):
    """Base exception for path parsing and traversal failures."""

    error_type = "path"


class MalformedPathException(PathException):
    """Raised when a path expression cannot be parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            "MALFORMED_PATH",
            f"Malformed path '{path}': {reason}",
            {"path": path, "reason": reason},
        )


class PathTypeConflictException(PathException):
    """Raised when a path traverses a container of the wrong kind."""

    def __init__(self, path: str, segment: Any, found_kind: str, expected_kind: str):
        super().__init__(
            "PATH_TYPE_CONFLICT",
            f"Cannot descend into {found_kind} with segment '{segment}' of path '{path}' (expected {expected_kind})",
            {"path": path, "segment": segment, "found": found_kind, "expected": expected_kind},
        )


class ValidationFailedException(MetadataAssistantException):
    """Raised when a candidate document is rejected by the schema validator."""

    error_type = "validation"


class LLMException(MetadataAssistantException):
    """Exception for completion provider failures."""

    error_type = "llm"


class NetworkException(MetadataAssistantException):
    """Exception for unreachable endpoints and non-2xx responses."""

    error_type = "network"


class ToolException(MetadataAssistantException):
    """Exception for tool execution failures."""

    error_type = "tool"


class ToolRegistrationException(ToolException):
    """Raised when a tool declaration is rejected at registration time."""


class SessionException(MetadataAssistantException):
    """Exception for editing session failures."""

    error_type = "session"


class PromptException(MetadataAssistantException):
    """Raised when a configured prompt file cannot be loaded."""

    error_type = "configuration"
