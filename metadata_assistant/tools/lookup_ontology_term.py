"""The lookup_ontology_term tool: validated identifiers for the about field."""

import json
from typing import Any, Dict

from .registry import BaseTool, ToolExecutionContext
from ..models.requests import LookupOntologyParams


class LookupOntologyTermTool(BaseTool):
    """Searches OLS ontologies and the Cognitive Atlas for term URIs."""

    name = "lookup_ontology_term"
    description = (
        "Look up validated ontology terms for brain regions, anatomical structures, diseases, disorders, "
        "or cognitive concepts. Returns standardized identifiers (URIs) that can be used with "
        "propose_metadata_change to add entries to the 'about' field."
    )
    parameters = {
        "term": {
            "type": "string",
            "description": "The term to search for (e.g., 'hippocampus', 'Parkinson disease', 'working memory')",
        },
        "category": {
            "type": "string",
            "enum": ["anatomy", "disorder", "cognitive", "auto"],
            "description": (
                "'anatomy' searches UBERON and CL, 'disorder' searches DOID, HP and NCIT, 'cognitive' "
                "searches the Cognitive Atlas, 'auto' searches all of them. Default is 'auto'."
            ),
        },
        "maxResults": {
            "type": "number",
            "description": "Maximum number of results to return (1-10). Default is 5.",
        },
    }
    required = ["term"]

    def get_detailed_description(self) -> str:
        return """Use this tool to look up validated ontology terms when users mention brain regions, anatomical structures, diseases, disorders, or cognitive concepts.

**IMPORTANT: Always use this tool to get the correct ontology identifier before proposing changes to the 'about' field. Never guess or fabricate ontology identifiers.**

**Ontologies searched:**
- **Anatomy**: UBERON (anatomical structures), CL (cell types)
- **Disorder**: DOID (diseases), HP (phenotypes), NCIT (NCI thesaurus)
- **Cognitive**: Cognitive Atlas (cognitive concepts, mental processes)

**Examples:**
- { "term": "hippocampus", "category": "anatomy" }
- { "term": "Parkinson", "category": "disorder" }
- { "term": "working memory", "category": "cognitive" }

**Workflow:**
1. Search for the term
2. Present the options to the user if there are several matches
3. Use propose_metadata_change to add the chosen term to the "about" array"""

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        args = LookupOntologyParams.model_validate(params)
        search = await context.ontology_lookup.search(args.term, args.category, args.max_results)

        if not search.results and search.failed_sources:
            return {
                "success": False,
                "error": f"Error searching ontologies: {', '.join(search.failed_sources)} unavailable",
                "hint": "The OLS API might be temporarily unavailable. Please try again later.",
            }

        if not search.results:
            return {
                "success": True,
                "term": args.term,
                "category": args.category,
                "results": [],
                "message": f'No matching terms found for "{args.term}". Try different search terms or check spelling.',
            }

        best = search.results[0]
        example = json.dumps({"schemaKey": best.schema_key, "identifier": best.identifier, "name": best.name})
        body: Dict[str, Any] = {
            "success": True,
            "term": args.term,
            "category": args.category,
            "resultsCount": len(search.results),
            "totalFound": search.total_found,
            "results": [term.to_wire() for term in search.results],
            "usage": (
                "To add a term to the dandiset metadata, use propose_metadata_change with:\n"
                '- path: "about.{next_index}" (use the next available index in the about array)\n'
                f"- newValue: {example}"
            ),
        }
        if search.failed_sources:
            body["skippedSources"] = search.failed_sources
        return body
