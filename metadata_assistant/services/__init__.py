"""Document, validation, lookup and completion services for the Metadata Assistant.

``EditingSession`` lives in ``services.session`` and is re-exported from the
top-level package; it depends on the tools package, which depends on these
services.
"""

from .path_resolver import PathResolver
from .schema_validator import SchemaValidator, format_validation_errors
from .changeset import ChangeSet
from .interface import CompletionProvider
from .openai_adapter import OpenAICompletionProvider
from .custom_adapter import CustomCompletionProvider
from .factory import create_completion_provider
from .identifier_validator import IdentifierValidator, IdentifierCheck
from .ontology_lookup import OntologyLookup, OntologyTerm, OntologySearchResult
from .archive_client import ArchiveClient, DandiArchiveClient, DandisetVersionInfo
from .chat_orchestrator import ChatOrchestrator, OrchestratorState, TurnResult

__all__ = [
    "PathResolver",
    "SchemaValidator",
    "format_validation_errors",
    "ChangeSet",
    "CompletionProvider",
    "OpenAICompletionProvider",
    "CustomCompletionProvider",
    "create_completion_provider",
    "IdentifierValidator",
    "IdentifierCheck",
    "OntologyLookup",
    "OntologyTerm",
    "OntologySearchResult",
    "ArchiveClient",
    "DandiArchiveClient",
    "DandisetVersionInfo",
    "ChatOrchestrator",
    "OrchestratorState",
    "TurnResult",
]
