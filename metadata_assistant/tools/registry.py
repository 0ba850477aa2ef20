"""Tool registry and executor for assistant tool calls."""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..config.models import AssistantConfig
from ..models.chat import ToolCall
from ..models.errors import MetadataAssistantException, ToolRegistrationException
from ..models.requests import ToolResult
from ..services.changeset import ChangeSet
from ..services.identifier_validator import IdentifierValidator
from ..services.ontology_lookup import OntologyLookup
from ..services.schema_validator import SchemaValidator
from ..utils.logging_config import log_error_with_context

logger = logging.getLogger(__name__)

TOOL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


@dataclass
class ToolExecutionContext:
    """Everything a tool may read or mutate while it runs.

    The base document is read through a getter so that a tool always sees
    the session's current base, including after a commit reloads it.
    """

    get_base_document: Callable[[], Any]
    changeset: ChangeSet
    validator: SchemaValidator
    identifier_validator: IdentifierValidator
    ontology_lookup: OntologyLookup
    config: AssistantConfig = field(default_factory=AssistantConfig)

    @property
    def base_document(self) -> Any:
        return self.get_base_document()

    def effective_document(self) -> Any:
        return self.changeset.effective_document(self.get_base_document())


class BaseTool(ABC):
    """A schema-described operation the assistant can invoke.

    Subclasses set ``name``, ``description``, ``parameters`` (JSON-schema
    properties) and ``required``, and implement ``execute``.
    """

    name: str = ""
    description: str = ""
    parameters: Dict[str, Any] = {}
    required: List[str] = []

    @abstractmethod
    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        """Run the tool.

        Args:
            params: Decoded call arguments
            context: Session state the tool operates on

        Returns:
            Result body with a ``success`` flag, plus ``error`` and optional
            ``hint`` when it is false

        Raises:
            MetadataAssistantException: For categorized failures
            pydantic.ValidationError: If the arguments do not match the schema
        """
        pass

    def get_detailed_description(self) -> str:
        return self.description

    def get_input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": self.parameters,
            "required": list(self.required),
        }

    def get_declaration(self) -> Dict[str, Any]:
        """OpenAI function-tool declaration sent to the completion provider."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.get_input_schema(),
            },
        }

    def get_tool_schema(self) -> Dict[str, Any]:
        """Get the MCP tool schema for this tool.

        Returns:
            Tool schema dictionary for MCP registration
        """
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.get_input_schema(),
        }


class ToolRegistry:
    """Name to tool mapping, validated when a tool is registered."""

    def __init__(self, tools: Optional[List[BaseTool]] = None):
        self._tools: Dict[str, BaseTool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        """Register a tool.

        Raises:
            ToolRegistrationException: If the name is invalid or taken, or the
                parameter schema is malformed
        """
        name = tool.name
        if not isinstance(name, str) or not TOOL_NAME_PATTERN.match(name):
            raise ToolRegistrationException(
                "INVALID_TOOL_NAME",
                f"Tool name {name!r} must match {TOOL_NAME_PATTERN.pattern}",
                {"tool_name": name},
            )
        if name in self._tools:
            raise ToolRegistrationException(
                "DUPLICATE_TOOL",
                f"A tool named '{name}' is already registered",
                {"tool_name": name},
            )
        if not isinstance(tool.parameters, dict) or not all(
            isinstance(schema, dict) for schema in tool.parameters.values()
        ):
            raise ToolRegistrationException(
                "INVALID_TOOL_SCHEMA",
                f"Parameters of tool '{name}' must be a mapping of property schemas",
                {"tool_name": name},
            )
        undeclared = [param for param in tool.required if param not in tool.parameters]
        if undeclared:
            raise ToolRegistrationException(
                "INVALID_TOOL_SCHEMA",
                f"Tool '{name}' requires undeclared parameters: {', '.join(undeclared)}",
                {"tool_name": name, "undeclared": undeclared},
            )

        self._tools[name] = tool
        logger.debug(f"Registered tool '{name}'")

    def get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def declarations(self) -> List[Dict[str, Any]]:
        return [tool.get_declaration() for tool in self._tools.values()]

    def tool_schemas(self) -> List[Dict[str, Any]]:
        return [tool.get_tool_schema() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)


def _format_argument_errors(error: PydanticValidationError) -> str:
    messages = []
    for err in error.errors():
        msg = err["msg"]
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        location = ".".join(str(loc) for loc in err["loc"])
        messages.append(f"{location}: {msg}" if location else msg)
    return "; ".join(messages)


class ToolExecutor:
    """Dispatches tool calls and always answers with a structured result.

    Exceptions raised by tools are folded into failed ToolResults. Only
    cancellation propagates, so that an abandoned call never completes.
    """

    def __init__(self, registry: ToolRegistry, context: ToolExecutionContext):
        self.registry = registry
        self.context = context

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        """Execute one tool call.

        Args:
            tool_call: Call emitted by the assistant

        Returns:
            ToolResult whose content is the JSON string stored in the transcript
        """
        name = tool_call.function_name
        tool = self.registry.get(name)
        if tool is None:
            logger.warning(f"Assistant requested unknown tool '{name}'")
            return self._failure(
                tool_call,
                f"Unknown tool: {name}",
                "UNKNOWN_TOOL",
                hint=f"Available tools: {', '.join(self.registry.names())}",
            )

        try:
            params = json.loads(tool_call.arguments_json or "{}")
        except json.JSONDecodeError as e:
            return self._failure(
                tool_call,
                f"Tool arguments are not valid JSON: {e}",
                "INVALID_ARGUMENTS",
                hint="Send the arguments as a single JSON object.",
            )
        if not isinstance(params, dict):
            return self._failure(
                tool_call,
                "Tool arguments must be a JSON object",
                "INVALID_ARGUMENTS",
                hint="Send the arguments as a single JSON object.",
            )

        logger.info(f"Executing tool '{name}' (call {tool_call.id})")
        try:
            body = await tool.execute(params, self.context)
        except PydanticValidationError as e:
            return self._failure(tool_call, _format_argument_errors(e), "INVALID_ARGUMENTS")
        except MetadataAssistantException as e:
            logger.warning(f"Tool '{name}' failed: {e.error_code}: {e.message}")
            return self._failure(tool_call, e.message, e.error_code)
        except Exception as e:
            log_error_with_context(logger, e, {"tool": name, "call_id": tool_call.id}, "tool execution")
            return self._failure(tool_call, f"Tool execution failed: {e}", "TOOL_EXECUTION_FAILED")

        body = dict(body)
        success = bool(body.pop("success", True))
        error = body.pop("error", None)
        hint = body.pop("hint", None)
        return ToolResult(
            tool_call_id=tool_call.id,
            tool_name=name,
            success=success,
            payload=body,
            error=error,
            hint=hint,
        )

    def _failure(self, tool_call: ToolCall, message: str, error_code: str, hint: Optional[str] = None) -> ToolResult:
        return ToolResult(
            tool_call_id=tool_call.id,
            tool_name=tool_call.function_name,
            success=False,
            payload={"errorCode": error_code},
            error=message,
            hint=hint,
        )
