"""Assistant tools for metadata editing."""

from .registry import BaseTool, ToolExecutionContext, ToolExecutor, ToolRegistry
from .propose_change import ProposeMetadataChangeTool
from .fetch_url import FetchUrlTool, html_to_text
from .lookup_ontology_term import LookupOntologyTermTool
from .session_tools import ListPendingChangesTool, RevertMetadataChangeTool, GetEffectiveMetadataTool
from .factory import create_tool_registry

__all__ = [
    "BaseTool",
    "ToolExecutionContext",
    "ToolExecutor",
    "ToolRegistry",
    "ProposeMetadataChangeTool",
    "FetchUrlTool",
    "html_to_text",
    "LookupOntologyTermTool",
    "ListPendingChangesTool",
    "RevertMetadataChangeTool",
    "GetEffectiveMetadataTool",
    "create_tool_registry",
]
