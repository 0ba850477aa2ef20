"""MCP server interface for the Metadata Assistant.

Exposes one editing session over stdio: the assistant tools (routed through
the session's ToolExecutor) plus server-level tools to load a dandiset,
validate the effective metadata and commit the pending changes.
"""

import json
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from mcp.server import Server
from mcp.server.lowlevel.server import NotificationOptions
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import ErrorData, METHOD_NOT_FOUND, TextContent, Tool

from .config.models import AssistantConfig
from .models.chat import ToolCall
from .models.errors import MetadataAssistantException
from .services.session import EditingSession
from .tools.factory import create_tool_registry
from .utils.error_handler import create_error_response, handle_error
from .utils.logging_config import ErrorTrackingHandler

SERVER_NAME = "dandiset-metadata-assistant"
SERVER_VERSION = "1.0.0"

SERVER_TOOLS = [
    Tool(
        name="load_dandiset",
        description="Load the metadata of a dandiset version from the archive, discarding pending changes",
        inputSchema={
            "type": "object",
            "properties": {
                "dandiset_id": {"type": "string", "description": "Six-digit dandiset identifier, e.g. 000003"},
                "version": {"type": "string", "description": "Version to load (default: draft)"},
                "api_key": {"type": "string", "description": "Archive API key for embargoed dandisets"},
            },
            "required": ["dandiset_id"],
        },
    ),
    Tool(
        name="validate_metadata",
        description="Validate the metadata with all pending changes applied",
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    Tool(
        name="commit_changes",
        description="Commit all pending changes to the archive after validating the result",
        inputSchema={
            "type": "object",
            "properties": {
                "api_key": {"type": "string", "description": "Archive API key (defaults to the configured key)"},
            },
            "required": [],
        },
    ),
]


class MCPServer:
    """MCP server that exposes a metadata editing session."""

    def __init__(
        self,
        config: AssistantConfig,
        session: Optional[EditingSession] = None,
        error_tracker: Optional[ErrorTrackingHandler] = None,
    ):
        """Initialize the MCP server with configuration.

        Args:
            config: Assistant configuration
            session: Session to expose, created from the config when omitted
            error_tracker: Handler whose warning and error summary is reported by get_server_info
        """
        self.config = config
        self.error_tracker = error_tracker
        self.logger = structlog.get_logger(__name__)
        self.session = session or EditingSession(config, registry=create_tool_registry(include_session_tools=True))

        self.server = Server(SERVER_NAME)
        self._server_handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]] = {
            "load_dandiset": self._handle_load_dandiset,
            "validate_metadata": self._handle_validate_metadata,
            "commit_changes": self._handle_commit_changes,
        }
        self._register_handlers()

        self.logger.info("MCP server initialized", tools=len(self.session.registry) + len(SERVER_TOOLS))

    def _register_handlers(self) -> None:
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def handle_list_tools() -> List[Tool]:
            return await self._handle_list_tools()

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            return await self._handle_call_tool(name, arguments)

    async def _handle_list_tools(self) -> List[Tool]:
        """List the session tools followed by the server-level tools."""
        tools = [Tool(**schema) for schema in self.session.registry.tool_schemas()]
        tools.extend(SERVER_TOOLS)
        self.logger.debug("Listed tools", count=len(tools))
        return tools

    async def _handle_call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        """Route a tool call.

        Raises:
            McpError: If no tool has this name
        """
        arguments = arguments or {}
        handler = self._server_handlers.get(name)
        if handler is not None:
            self.logger.info("Handling server tool call", tool=name)
            return self._create_tool_result(await handler(arguments))

        if name not in self.session.registry:
            raise McpError(ErrorData(code=METHOD_NOT_FOUND, message=f"Unknown tool: {name}"))

        call = ToolCall(id=f"mcp_{uuid.uuid4().hex[:12]}", function_name=name, arguments_json=json.dumps(arguments))
        result = await self.session.executor.execute(call)
        self.logger.info("Tool call finished", tool=name, success=result.success)
        return [TextContent(type="text", text=result.to_content())]

    async def _handle_load_dandiset(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        dandiset_id = str(arguments.get("dandiset_id", "")).strip()
        version = arguments.get("version") or "draft"
        if not dandiset_id:
            return {"error": {"message": "dandiset_id is required"}, "status": "error"}

        try:
            info = await self.session.load(dandiset_id, version, arguments.get("api_key"))
        except MetadataAssistantException as e:
            self.logger.warning("Failed to load dandiset", dandiset_id=dandiset_id, error=e.message)
            return create_error_response(handle_error(e))

        return {
            "status": "success",
            "dandiset_id": dandiset_id,
            "version": version,
            "name": info.name,
            "version_status": info.status,
            "fields": sorted(info.metadata),
        }

    async def _handle_validate_metadata(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        if not self.session.is_loaded:
            return {"error": {"message": "No dandiset is loaded"}, "status": "error"}
        return {"status": "success", **self.session.validate().to_wire()}

    async def _handle_commit_changes(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        outcome = await self.session.commit(arguments.get("api_key"))
        if not outcome.success:
            return create_error_response(outcome.error)
        return {"status": "success", **outcome.model_dump(exclude_none=True)}

    def _create_tool_result(self, result: Dict[str, Any]) -> List[TextContent]:
        """Render a server tool result as MCP text content."""
        if "error" in result:
            error_info = result["error"]
            content = [TextContent(type="text", text=f"Error: {error_info.get('message', 'Unknown error')}")]
            if error_info.get("details"):
                details_text = json.dumps(error_info["details"], indent=2, default=str)
                content.append(TextContent(type="text", text=f"Details: {details_text}"))
            return content
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    async def run_stdio(self) -> None:
        """Run the MCP server using stdio transport."""
        self.logger.info("Starting MCP server with stdio transport")
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    InitializationOptions(
                        server_name=SERVER_NAME,
                        server_version=SERVER_VERSION,
                        capabilities=self.server.get_capabilities(
                            notification_options=NotificationOptions(),
                            experimental_capabilities={},
                        ),
                    ),
                )
        finally:
            await self.session.aclose()

    def get_server_info(self) -> Dict[str, Any]:
        """Get server information and configuration."""
        info = {
            "name": SERVER_NAME,
            "version": SERVER_VERSION,
            "description": "MCP server for reviewing and editing DANDI dandiset metadata",
            "tools": self.session.registry.names() + [tool.name for tool in SERVER_TOOLS],
            "config": {
                "llm_provider": self.config.llm_config.provider,
                "llm_model": self.config.llm_config.model,
                "archive_instance": self.config.archive_config.instance,
                "log_level": self.config.log_level,
            },
        }
        if self.error_tracker is not None:
            info["errors"] = self.error_tracker.get_error_summary()
        return info

