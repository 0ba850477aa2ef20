"""Data models for the Metadata Assistant."""

from .core import (
    MISSING,
    NOT_FOUND,
    NodeKind,
    kind_of,
    DocumentPath,
    PendingChange,
    describe_value,
)

from .chat import (
    ToolCall,
    TokenUsage,
    ChatMessage,
    ChatTranscript,
    ToolCallDelta,
    CompletionChunk,
)

from .validation import (
    ValidationIssue,
    ValidationResult,
)

from .requests import (
    ProposeChangeParams,
    LookupOntologyParams,
    FetchUrlParams,
    RevertChangeParams,
    ToolResult,
)

from .errors import (
    ErrorResponse,
    PathError,
    ValidationError,
    LLMError,
    NetworkError,
    ToolError,
    SessionError,
    MetadataAssistantException,
    PathException,
    MalformedPathException,
    PathTypeConflictException,
    ValidationFailedException,
    LLMException,
    NetworkException,
    ToolException,
    ToolRegistrationException,
    SessionException,
    PromptException,
)

__all__ = [
    # Core models
    "MISSING",
    "NOT_FOUND",
    "NodeKind",
    "kind_of",
    "DocumentPath",
    "PendingChange",
    "describe_value",

    # Chat models
    "ToolCall",
    "TokenUsage",
    "ChatMessage",
    "ChatTranscript",
    "ToolCallDelta",
    "CompletionChunk",

    # Validation models
    "ValidationIssue",
    "ValidationResult",

    # Tool argument/result models
    "ProposeChangeParams",
    "LookupOntologyParams",
    "FetchUrlParams",
    "RevertChangeParams",
    "ToolResult",

    # Error models
    "ErrorResponse",
    "PathError",
    "ValidationError",
    "LLMError",
    "NetworkError",
    "ToolError",
    "SessionError",

    # Exception classes
    "MetadataAssistantException",
    "PathException",
    "MalformedPathException",
    "PathTypeConflictException",
    "ValidationFailedException",
    "LLMException",
    "NetworkException",
    "ToolException",
    "ToolRegistrationException",
    "SessionException",
    "PromptException",
]
