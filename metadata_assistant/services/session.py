"""Editing session: one loaded dandiset, its pending changes and its chat."""

import copy
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, SerializeAsAny

from ..config.models import AssistantConfig
from ..models.chat import ChatTranscript
from ..models.core import PendingChange
from ..models.errors import (
    ErrorResponse, LLMError, MetadataAssistantException, NetworkException, SessionError, SessionException,
    ValidationError,
)
from ..models.validation import ValidationResult
from ..tools.factory import create_tool_registry
from ..tools.registry import ToolExecutionContext, ToolExecutor, ToolRegistry
from ..utils.error_handler import handle_error
from ..utils.prompt_manager import PromptManager
from .archive_client import ArchiveClient, DandiArchiveClient, DandisetVersionInfo
from .changeset import ChangeSet
from .chat_orchestrator import ChatOrchestrator, OrchestratorState, TurnResult
from .factory import create_completion_provider
from .identifier_validator import IdentifierValidator
from .interface import CompletionProvider
from .ontology_lookup import OntologyLookup
from .path_resolver import PathLike, PathResolver
from .schema_validator import SchemaValidator, format_validation_errors

logger = logging.getLogger(__name__)


class CommitResult(BaseModel):
    """Outcome of committing the pending changes to the archive."""

    success: bool
    committed_changes: int = 0
    error: Optional[SerializeAsAny[ErrorResponse]] = None
    response: Optional[Dict[str, Any]] = None
    refreshed: bool = False


class EditingSession:
    """Owns everything one user edits with.

    The base document is only replaced by ``load``/``set_document`` or after a
    successful commit. All edits go through the ChangeSet and become visible
    in ``effective_document``.
    """

    def __init__(
        self,
        config: Optional[AssistantConfig] = None,
        provider: Optional[CompletionProvider] = None,
        archive_client: Optional[ArchiveClient] = None,
        registry: Optional[ToolRegistry] = None,
    ):
        self.config = config or AssistantConfig()
        self.resolver = PathResolver()
        self.changeset = ChangeSet(self.resolver)
        self.validator = SchemaValidator(self.config.validator_config)
        self.identifier_validator = IdentifierValidator(self.config.lookup_config)
        self.ontology_lookup = OntologyLookup(self.config.lookup_config)
        self.archive_client = archive_client or DandiArchiveClient(self.config.archive_config)
        self.prompt_manager = PromptManager(self.config.chat_config)

        self.base_document: Optional[Dict[str, Any]] = None
        self.dandiset_id: Optional[str] = None
        self.version: Optional[str] = None
        self.version_info: Optional[DandisetVersionInfo] = None

        self.registry = registry or create_tool_registry()
        self.context = ToolExecutionContext(
            get_base_document=lambda: self.base_document,
            changeset=self.changeset,
            validator=self.validator,
            identifier_validator=self.identifier_validator,
            ontology_lookup=self.ontology_lookup,
            config=self.config,
        )
        self.executor = ToolExecutor(self.registry, self.context)
        self.transcript = ChatTranscript(model=self.config.llm_config.model)

        self._provider = provider
        self._orchestrator: Optional[ChatOrchestrator] = None

    @property
    def provider(self) -> CompletionProvider:
        """Completion provider, created from the LLM config on first use."""
        if self._provider is None:
            self._provider = create_completion_provider(self.config.llm_config)
        return self._provider

    @property
    def orchestrator(self) -> ChatOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = ChatOrchestrator(
                provider=self.provider,
                executor=self.executor,
                transcript=self.transcript,
                system_prompt_builder=self.build_system_prompt,
                max_tool_rounds=self.config.chat_config.max_tool_rounds,
            )
        return self._orchestrator

    @property
    def is_loaded(self) -> bool:
        return self.base_document is not None

    @property
    def chat_state(self) -> str:
        if self._orchestrator is None:
            return OrchestratorState.IDLE.value
        return self._orchestrator.state.value

    def acknowledge_chat_error(self) -> Optional[ErrorResponse]:
        if self._orchestrator is None:
            return None
        return self._orchestrator.acknowledge_error()

    async def load(self, dandiset_id: str, version: str = "draft", api_key: Optional[str] = None) -> DandisetVersionInfo:
        """Fetch a dandiset version and make its metadata the base document.

        Pending changes are discarded. Switching to another dandiset also
        starts a fresh chat.

        Raises:
            NetworkException: If the archive cannot be reached or has no such version
        """
        info = await self.archive_client.fetch_version_info(dandiset_id, version, api_key)
        self.version_info = info
        self.set_document(info.metadata, dandiset_id, version)
        logger.info(f"Loaded dandiset {dandiset_id}/{version} ({len(info.metadata)} top-level fields)")
        return info

    def set_document(
        self, document: Dict[str, Any], dandiset_id: Optional[str] = None, version: str = "draft"
    ) -> None:
        """Replace the base document directly, discarding pending changes."""
        if dandiset_id != self.dandiset_id:
            self.reset_chat()
        self.base_document = copy.deepcopy(document)
        self.dandiset_id = dandiset_id
        self.version = version
        self.changeset.clear()

    def effective_document(self) -> Optional[Dict[str, Any]]:
        """Base document with every pending change folded in."""
        if self.base_document is None:
            return None
        return self.changeset.effective_document(self.base_document)

    def validate(self) -> ValidationResult:
        """Validate the effective document.

        Raises:
            SessionException: If nothing is loaded
        """
        self._require_document()
        return self.validator.validate(self.effective_document())

    def revert_change(self, path: PathLike) -> List[PendingChange]:
        """Revert the pending change for a path and the changes staged beneath it."""
        return self.changeset.revert(path)

    def clear_changes(self) -> None:
        self.changeset.clear()

    async def chat(self, text: str) -> TurnResult:
        """Submit a user message to the assistant and run the turn to completion."""
        try:
            orchestrator = self.orchestrator
        except ValueError as e:
            logger.error(f"Completion provider is not configured: {e}")
            return TurnResult(error=LLMError(
                error_code="PROVIDER_NOT_CONFIGURED",
                message=str(e),
                provider=self.config.llm_config.provider,
                suggestions=["Set LLM_API_KEY (or OPENROUTER_API_KEY) and restart"],
            ))
        return await orchestrator.submit_user_message(text)

    def build_system_prompt(self) -> str:
        return self.prompt_manager.build_system_prompt(
            self.dandiset_id,
            self.version,
            self.base_document,
            self.effective_document(),
            tools=list(self.registry),
        )

    async def commit(self, api_key: Optional[str] = None) -> CommitResult:
        """Write the effective document back to the archive.

        The commit is refused when there is nothing to commit or when the
        effective document does not validate. On success the ChangeSet is
        cleared and the base document re-fetched; on failure nothing changes.

        Args:
            api_key: Archive API key, defaults to the configured one

        Returns:
            CommitResult describing the outcome
        """
        if self.base_document is None or self.dandiset_id is None:
            return self._commit_refused("NO_DOCUMENT", "No dandiset is loaded")
        if not self.changeset:
            return self._commit_refused("NO_CHANGES", "There are no pending changes to commit")

        key = api_key or self.config.archive_config.api_key
        if not key:
            return self._commit_refused("MISSING_API_KEY", "An archive API key is required to commit changes")

        document = self.effective_document()
        validation = self.validator.validate(document)
        if not validation.valid:
            field_errors: Dict[str, list] = {}
            for issue in validation.errors:
                field_errors.setdefault(issue.path, []).append(issue.message)
            return CommitResult(
                success=False,
                error=ValidationError(
                    error_code="INVALID_METADATA",
                    message=f"Metadata is invalid: {format_validation_errors(validation.errors)}",
                    details={"validation": validation.to_wire()},
                    field_errors=field_errors,
                ),
            )

        count = len(self.changeset)
        try:
            response = await self.archive_client.commit_metadata(self.dandiset_id, self.version, document, key)
        except MetadataAssistantException as e:
            logger.error(f"Commit of {count} change(s) to {self.dandiset_id}/{self.version} failed: {e.message}")
            return CommitResult(success=False, error=handle_error(e))

        logger.info(f"Committed {count} change(s) to {self.dandiset_id}/{self.version}")
        self.changeset.clear()

        refreshed = True
        try:
            self.version_info = await self.archive_client.fetch_version_info(self.dandiset_id, self.version, key)
            self.base_document = copy.deepcopy(self.version_info.metadata)
        except NetworkException as e:
            logger.warning(f"Committed, but re-fetching the metadata failed ({e.message}); using the committed document")
            self.base_document = document
            refreshed = False

        return CommitResult(success=True, committed_changes=count, response=response, refreshed=refreshed)

    def reset_chat(self) -> None:
        """Start a new, empty transcript."""
        self.transcript = ChatTranscript(model=self.config.llm_config.model)
        if self._orchestrator is not None:
            self._orchestrator.cancel()
            self._orchestrator.transcript = self.transcript
            self._orchestrator.acknowledge_error()

    def reset(self) -> None:
        """Discard pending changes and the chat, keeping the loaded document."""
        self.changeset.clear()
        self.reset_chat()

    async def aclose(self) -> None:
        if self._provider is not None:
            await self._provider.aclose()

    def _require_document(self) -> None:
        if self.base_document is None:
            raise SessionException("NO_DOCUMENT", "No metadata is loaded; load a dandiset first")

    def _commit_refused(self, error_code: str, message: str) -> CommitResult:
        return CommitResult(success=False, error=SessionError(error_code=error_code, message=message))
