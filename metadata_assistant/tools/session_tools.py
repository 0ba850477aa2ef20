"""Tools that inspect or undo the pending changes of the session.

These are exposed on the MCP surface, where the client (not the assistant)
drives review. The chat assistant only gets them when asked for.
"""

from typing import Any, Dict

from .registry import BaseTool, ToolExecutionContext
from ..models.errors import SessionException
from ..models.requests import RevertChangeParams


class ListPendingChangesTool(BaseTool):
    name = "list_pending_changes"
    description = "List the metadata changes proposed in this session that have not been committed yet."
    parameters: Dict[str, Any] = {}
    required: list = []

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        changeset = context.changeset
        return {
            "success": True,
            "count": len(changeset),
            "changes": changeset.to_wire(),
            "summary": changeset.summary_lines(),
        }


class RevertMetadataChangeTool(BaseTool):
    name = "revert_metadata_change"
    description = "Discard the pending change for one path, restoring the field to its original value."
    parameters = {
        "path": {
            "type": "string",
            "description": 'Path of the pending change, e.g. "contributor.0.name"',
        },
    }
    required = ["path"]

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        args = RevertChangeParams.model_validate(params)
        removed = context.changeset.revert(args.path)
        if not removed:
            return {
                "success": False,
                "error": f"No pending change for '{args.path}'",
                "hint": "Use list_pending_changes to see which paths have pending changes.",
            }
        body: Dict[str, Any] = {
            "success": True,
            "path": args.path,
            "remaining": len(context.changeset),
            "message": f"Reverted pending change for '{args.path}'.",
        }
        if len(removed) > 1:
            body["alsoReverted"] = [str(change.path) for change in removed[1:]]
        return body


class GetEffectiveMetadataTool(BaseTool):
    name = "get_effective_metadata"
    description = "Return the metadata document with every pending change applied."
    parameters: Dict[str, Any] = {}
    required: list = []

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        """Fold the pending changes over the loaded document.

        Raises:
            SessionException: If no metadata document is loaded
        """
        if context.base_document is None:
            raise SessionException("NO_DOCUMENT", "No metadata is loaded; load a dandiset first")
        return {
            "success": True,
            "pendingChanges": len(context.changeset),
            "metadata": context.effective_document(),
        }
