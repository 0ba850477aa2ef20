"""Factory for the tool registry."""

from .fetch_url import FetchUrlTool
from .lookup_ontology_term import LookupOntologyTermTool
from .propose_change import ProposeMetadataChangeTool
from .registry import ToolRegistry
from .session_tools import GetEffectiveMetadataTool, ListPendingChangesTool, RevertMetadataChangeTool


def create_tool_registry(include_session_tools: bool = False) -> ToolRegistry:
    """Create a registry holding the built-in tools.

    Args:
        include_session_tools: Also register the review tools
            (list, revert, effective metadata)

    Returns:
        Populated ToolRegistry
    """
    registry = ToolRegistry([
        ProposeMetadataChangeTool(),
        FetchUrlTool(),
        LookupOntologyTermTool(),
    ])
    if include_session_tools:
        registry.register(ListPendingChangesTool())
        registry.register(RevertMetadataChangeTool())
        registry.register(GetEffectiveMetadataTool())
    return registry
