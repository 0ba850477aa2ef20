"""The propose_metadata_change tool: validated staging of one edit."""

import logging
from typing import Any, Dict

from .registry import BaseTool, ToolExecutionContext
from ..models.core import MISSING, NOT_FOUND
from ..models.errors import PathException, SessionException
from ..models.requests import ProposeChangeParams
from ..services.schema_validator import format_validation_errors

logger = logging.getLogger(__name__)

PATH_HINT = 'Use dot notation with numeric array indices, e.g. "contributor.0.name" or "keywords.2".'


class ProposeMetadataChangeTool(BaseTool):
    """Stages a change after checking the resulting document.

    The candidate document (effective document with the proposal folded in)
    must pass the schema validator, and identifiers in the new value must
    resolve, before the change is admitted to the ChangeSet.
    """

    name = "propose_metadata_change"
    description = (
        "Propose a change to one field of the dandiset metadata. The change is validated and staged for "
        "the user to review; it is not committed until the user commits all pending changes."
    )
    parameters = {
        "path": {
            "type": "string",
            "description": 'Dot-separated path of the field, e.g. "name", "contributor.0.name" or "keywords.3"',
        },
        "newValue": {
            "description": "New JSON value for the field (string, number, boolean, object, array or null)",
        },
        "delete": {
            "type": "boolean",
            "description": "Set to true to remove the field instead of setting a value",
        },
        "reason": {
            "type": "string",
            "description": "Short explanation of the change, shown to the user",
        },
    }
    required = ["path"]

    def get_detailed_description(self) -> str:
        return """Use this tool to propose modifications to the dandiset metadata.

**Parameters:**
- path: dot-separated path (e.g. "description", "contributor.0.name", "keywords.2")
- newValue: the complete new value for that path
- delete: true to remove the field instead
- reason: optional short justification

**Behavior:**
- The metadata with your change applied is validated first; invalid proposals are rejected with a list of errors and nothing is staged
- ORCID, ROR and URL values are checked to make sure they exist
- Proposing the same path again replaces the pending value; the original value is kept for review and revert
- To append to an array, use the next free index (e.g. "keywords.5" when there are 5 keywords)

**Examples:**
- { "path": "name", "newValue": "Hippocampal recordings in freely moving mice" }
- { "path": "keywords.0", "newValue": "hippocampus" }
- { "path": "about.0", "newValue": { "schemaKey": "Anatomy", "identifier": "http://purl.obolibrary.org/obo/UBERON_0002421", "name": "hippocampal formation" } }"""

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        """Validate and stage a proposed change.

        Raises:
            SessionException: If no metadata document is loaded
            pydantic.ValidationError: If the arguments are malformed
        """
        args = ProposeChangeParams.model_validate(params)
        base = context.base_document
        if base is None:
            raise SessionException("NO_DOCUMENT", "No metadata is loaded; load a dandiset first")

        changeset = context.changeset
        resolver = changeset.resolver
        new_value = MISSING if args.delete else args.new_value

        try:
            path = resolver.parse(args.path)
            current = resolver.get(changeset.effective_document(base), path)
            if args.delete and current is NOT_FOUND:
                return {
                    "success": False,
                    "error": f"Field '{path}' does not exist, nothing to delete",
                    "hint": "Check the current metadata for the exact path.",
                }
            candidate = changeset.with_provisional(path, new_value, base).effective_document(base)
        except PathException as e:
            return {"success": False, "error": e.message, "errorCode": e.error_code, "hint": PATH_HINT}

        validation = context.validator.validate(candidate)
        if not validation.valid:
            logger.info(f"Rejected proposal for '{path}': {len(validation.errors)} validation error(s)")
            return {
                "success": False,
                "error": f"Proposed change failed validation: {format_validation_errors(validation.errors)}",
                "errors": [issue.model_dump(exclude_none=True) for issue in validation.errors],
                "hint": "Read the errors, correct the value or path, and propose again.",
            }

        if not args.delete and context.config.lookup_config.verify_identifiers:
            check = await context.identifier_validator.validate_identifier_in_value(str(path), new_value)
            if not check.is_valid:
                logger.info(f"Rejected proposal for '{path}': {check.error}")
                return {
                    "success": False,
                    "error": check.error,
                    "hint": "Verify the identifier (for example with fetch_url) before proposing it again.",
                }

        change = changeset.propose(path, new_value, base)
        if path not in changeset:
            logger.info(f"Withdrew pending creation of '{path}' ({len(changeset)} pending)")
            return {
                "success": True,
                "path": str(path),
                "withdrawn": True,
                "message": f"'{path}' was only added in this session; its pending addition has been withdrawn.",
            }
        logger.info(f"Staged change for '{path}' ({len(changeset)} pending)")

        body: Dict[str, Any] = {"success": True, **change.to_wire()}
        action = "removal of" if args.delete else "change to"
        body["message"] = f"Proposed {action} '{path}' is pending review by the user."
        if args.reason:
            body["reason"] = args.reason
        return body
