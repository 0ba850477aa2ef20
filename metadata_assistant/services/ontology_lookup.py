"""Ontology term search over EBI OLS and the Cognitive Atlas."""

import asyncio
import logging
from typing import Any, Dict, List, Literal, Optional

import aiohttp
from pydantic import BaseModel, Field

from ..config.models import LookupConfig
from ..models.errors import NetworkException

logger = logging.getLogger(__name__)

OLS_SEARCH_URL = "https://www.ebi.ac.uk/ols4/api/search"
COGNITIVE_ATLAS_URL = "https://www.cognitiveatlas.org/api/v-alpha/concept"
COGNITIVE_ATLAS_CONCEPT_URL = "https://www.cognitiveatlas.org/concept/id/"

SchemaKey = Literal["Anatomy", "Disorder", "GenericType"]

# ontology -> (OLS id, schemaKey used in the dandiset "about" field)
OLS_ONTOLOGIES: Dict[str, Dict[str, str]] = {
    "UBERON": {"ols_id": "uberon", "schema_key": "Anatomy"},
    "DOID": {"ols_id": "doid", "schema_key": "Disorder"},
    "NCIT": {"ols_id": "ncit", "schema_key": "Disorder"},
    "HP": {"ols_id": "hp", "schema_key": "Disorder"},
    "GO": {"ols_id": "go", "schema_key": "GenericType"},
    "CL": {"ols_id": "cl", "schema_key": "Anatomy"},
}

CATEGORY_SOURCES: Dict[str, Dict[str, Any]] = {
    "anatomy": {"ols": ["UBERON", "CL"], "cognitive_atlas": False},
    "disorder": {"ols": ["DOID", "HP", "NCIT"], "cognitive_atlas": False},
    "cognitive": {"ols": [], "cognitive_atlas": True},
    "auto": {"ols": ["UBERON", "DOID", "HP", "CL"], "cognitive_atlas": True},
}


class OntologyTerm(BaseModel):
    """One candidate term returned by a lookup."""

    identifier: str = Field(..., description="Term URI to store in the metadata")
    name: str = Field(..., description="Human-readable label")
    schema_key: SchemaKey = Field(..., serialization_alias="schemaKey")
    ontology: str = Field(..., description="Source ontology")
    description: Optional[str] = None
    obo_id: Optional[str] = Field(default=None, serialization_alias="oboId")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OntologySearchResult(BaseModel):
    """Ranked terms from every source that answered."""

    term: str
    category: str
    results: List[OntologyTerm] = Field(default_factory=list)
    total_found: int = 0
    failed_sources: List[str] = Field(default_factory=list)


def rank_terms(terms: List[OntologyTerm], query: str) -> List[OntologyTerm]:
    """Order terms: exact label match, then prefix match, then shorter labels."""
    needle = query.lower()

    def sort_key(term: OntologyTerm):
        label = term.name.lower()
        return (label != needle, not label.startswith(needle), len(term.name))

    return sorted(terms, key=sort_key)


class OntologyLookup:
    """Searches biomedical ontologies for validated term identifiers."""

    def __init__(self, config: Optional[LookupConfig] = None):
        self.config = config or LookupConfig()

    async def search(self, term: str, category: str = "auto", max_results: int = 5) -> OntologySearchResult:
        """Search every source configured for a category.

        A failing source is logged and skipped; the remaining sources still
        contribute results.

        Args:
            term: Search text
            category: anatomy, disorder, cognitive or auto
            max_results: Maximum results per source and in the final list

        Returns:
            OntologySearchResult with ranked, truncated results

        Raises:
            ValueError: If the category is unknown
        """
        if category not in CATEGORY_SOURCES:
            raise ValueError(f"Unknown ontology category: {category}")
        sources = CATEGORY_SOURCES[category]

        collected: List[OntologyTerm] = []
        failed: List[str] = []

        for ontology in sources["ols"]:
            try:
                collected.extend(await self.search_ols(term, ontology, max_results))
            except NetworkException as e:
                logger.warning(f"Error searching {ontology}: {e.message}")
                failed.append(ontology)

        if sources["cognitive_atlas"]:
            try:
                collected.extend(await self.search_cognitive_atlas(term, max_results))
            except NetworkException as e:
                logger.warning(f"Error searching Cognitive Atlas: {e.message}")
                failed.append("CognitiveAtlas")

        ranked = rank_terms(collected, term)
        return OntologySearchResult(
            term=term,
            category=category,
            results=ranked[:max_results],
            total_found=len(ranked),
            failed_sources=failed,
        )

    async def search_ols(self, term: str, ontology: str, max_results: int) -> List[OntologyTerm]:
        """Query the EBI Ontology Lookup Service for one ontology.

        Raises:
            NetworkException: If OLS is unreachable or answers non-2xx
        """
        settings = OLS_ONTOLOGIES[ontology]
        params = {
            "q": term,
            "ontology": settings["ols_id"],
            "rows": str(max_results),
            "exact": "false",
            "queryFields": "label,synonym",
        }
        data = await self._get_json(OLS_SEARCH_URL, params)

        docs = []
        if isinstance(data, dict):
            docs = (data.get("response") or {}).get("docs") or []
        terms = []
        for doc in docs:
            if not doc.get("iri") or not doc.get("label"):
                continue
            descriptions = doc.get("description") or []
            terms.append(OntologyTerm(
                identifier=doc["iri"],
                name=doc["label"],
                schema_key=settings["schema_key"],
                ontology=ontology,
                description=descriptions[0] if descriptions else None,
                obo_id=doc.get("obo_id"),
            ))
        return terms

    async def search_cognitive_atlas(self, term: str, max_results: int) -> List[OntologyTerm]:
        """Query the Cognitive Atlas concept API.

        The API returns loosely matching concepts, so results are filtered
        locally on name and definition.

        Raises:
            NetworkException: If the API is unreachable or answers non-2xx
        """
        data = await self._get_json(COGNITIVE_ATLAS_URL, {"search": term})
        if not isinstance(data, list):
            return []

        needle = term.lower()
        terms = []
        for concept in data:
            name = concept.get("name") or ""
            definition = concept.get("definition_text") or ""
            if needle not in name.lower() and needle not in definition.lower():
                continue
            terms.append(OntologyTerm(
                identifier=f"{COGNITIVE_ATLAS_CONCEPT_URL}{concept.get('id')}",
                name=name,
                schema_key="GenericType",
                ontology="CognitiveAtlas",
                description=definition or None,
            ))
            if len(terms) >= max_results:
                break
        return terms

    async def _get_json(self, url: str, params: Dict[str, str]) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        headers = {"Accept": "application/json", "User-Agent": self.config.user_agent}
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, params=params, headers=headers) as response:
                    if response.status != 200:
                        raise NetworkException(
                            "LOOKUP_HTTP_ERROR",
                            f"{url} returned HTTP {response.status}",
                            {"url": url, "status": response.status},
                        )
                    return await response.json(content_type=None)
        except ValueError as e:
            raise NetworkException("LOOKUP_BAD_RESPONSE", f"{url} returned invalid JSON: {e}", {"url": url})
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkException("LOOKUP_UNREACHABLE", f"Could not reach {url}: {e}", {"url": url})
