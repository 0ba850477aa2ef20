"""Chat transcript models for the Metadata Assistant."""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class ToolCall(BaseModel):
    """A provider-emitted request to invoke a registered tool."""

    id: str = Field(..., description="Call identifier assigned by the provider")
    function_name: str = Field(..., description="Name of the tool to invoke")
    arguments_json: str = Field(default="{}", description="JSON-encoded call arguments")

    @field_validator('id', 'function_name')
    @classmethod
    def validate_not_empty(cls, v):
        """Ensure identifiers are not empty."""
        if not v or not v.strip():
            raise ValueError("Tool call id and function name cannot be empty")
        return v.strip()

    def to_provider_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.function_name, "arguments": self.arguments_json},
        }


class TokenUsage(BaseModel):
    """Token accounting reported by the completion provider."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    estimated_cost: float = Field(default=0.0, ge=0.0)

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            estimated_cost=self.estimated_cost + other.estimated_cost,
        )


class ChatMessage(BaseModel):
    """One entry of the conversation transcript."""

    role: Literal["system", "user", "assistant", "tool"] = Field(..., description="Message author")
    content: Optional[str] = Field(default=None, description="Message text")
    tool_calls: List[ToolCall] = Field(default_factory=list, description="Tool calls emitted by the assistant")
    tool_call_id: Optional[str] = Field(default=None, description="Call identifier a tool result answers")
    usage: Optional[TokenUsage] = Field(default=None, description="Usage reported for an assistant message")

    @model_validator(mode='after')
    def validate_role_fields(self):
        """Enforce the fields each role may carry."""
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("Tool result messages must reference a tool call id")
        if self.role != "assistant" and self.tool_calls:
            raise ValueError("Only assistant messages can carry tool calls")
        if self.role in ("user", "system") and self.content is None:
            raise ValueError(f"{self.role} messages must have content")
        return self

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> "ChatMessage":
        return cls(role="tool", tool_call_id=tool_call_id, content=content)

    def to_provider_dict(self) -> Dict[str, Any]:
        """Render as an OpenAI-compatible chat message."""
        message: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [call.to_provider_dict() for call in self.tool_calls]
        if self.tool_call_id:
            message["tool_call_id"] = self.tool_call_id
        return message


class ChatTranscript(BaseModel):
    """Append-only conversation owned by one editing session."""

    model: str = Field(..., description="Completion model used for this chat")
    messages: List[ChatMessage] = Field(default_factory=list)
    total_usage: TokenUsage = Field(default_factory=TokenUsage)

    def append(self, message: ChatMessage) -> None:
        self.messages.append(message)
        if message.role == "assistant" and message.usage:
            self.total_usage = self.total_usage + message.usage

    def to_provider_messages(self) -> List[Dict[str, Any]]:
        return [message.to_provider_dict() for message in self.messages]

    def __len__(self) -> int:
        return len(self.messages)


class ToolCallDelta(BaseModel):
    """Incremental fragment of a streamed tool call."""

    index: int = Field(..., ge=0, description="Position of the call within the message")
    id: Optional[str] = None
    function_name: Optional[str] = None
    arguments_delta: str = ""


class CompletionChunk(BaseModel):
    """One streamed fragment of an assistant message."""

    content_delta: str = ""
    tool_call_deltas: List[ToolCallDelta] = Field(default_factory=list)
    usage: Optional[TokenUsage] = None
    finish_reason: Optional[str] = None
