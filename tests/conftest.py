"""Shared fixtures: a valid dandiset document, fake archive and provider."""

import copy
from typing import Any, AsyncIterator, Dict, List, Optional

import pytest

from metadata_assistant.config.models import AssistantConfig, LLMConfig, LookupConfig
from metadata_assistant.models.chat import CompletionChunk, TokenUsage, ToolCallDelta
from metadata_assistant.models.errors import NetworkException
from metadata_assistant.services.archive_client import ArchiveClient, DandisetVersionInfo
from metadata_assistant.services.changeset import ChangeSet
from metadata_assistant.services.identifier_validator import IdentifierValidator
from metadata_assistant.services.interface import CompletionProvider
from metadata_assistant.services.ontology_lookup import OntologyLookup
from metadata_assistant.services.schema_validator import SchemaValidator
from metadata_assistant.services.session import EditingSession
from metadata_assistant.tools.factory import create_tool_registry
from metadata_assistant.tools.registry import ToolExecutionContext, ToolExecutor

SAMPLE_METADATA: Dict[str, Any] = {
    "id": "DANDI:000003/draft",
    "identifier": "DANDI:000003",
    "name": "Physiological properties of hippocampal neurons",
    "description": "Extracellular recordings from CA1 in freely moving mice.",
    "schemaVersion": "0.6.7",
    "license": ["spdx:CC-BY-4.0"],
    "contributor": [
        {
            "schemaKey": "Person",
            "name": "Doe, Jane",
            "identifier": "0000-0002-1825-0097",
            "roleName": ["dcite:Author", "dcite:ContactPerson"],
        },
    ],
    "keywords": ["hippocampus", "mouse"],
    "about": [],
}


def text_chunks(text: str, usage: Optional[TokenUsage] = None) -> List[CompletionChunk]:
    """Split a reply into two streamed fragments."""
    middle = len(text) // 2
    chunks = [CompletionChunk(content_delta=text[:middle]), CompletionChunk(content_delta=text[middle:])]
    chunks.append(CompletionChunk(usage=usage, finish_reason="stop"))
    return chunks


def tool_call_chunks(calls: List[Dict[str, str]], usage: Optional[TokenUsage] = None) -> List[CompletionChunk]:
    """Stream tool calls with their arguments split across fragments."""
    chunks = []
    for index, call in enumerate(calls):
        arguments = call["arguments"]
        middle = len(arguments) // 2
        chunks.append(CompletionChunk(tool_call_deltas=[
            ToolCallDelta(index=index, id=call["id"], function_name=call["name"], arguments_delta=arguments[:middle]),
        ]))
        chunks.append(CompletionChunk(tool_call_deltas=[
            ToolCallDelta(index=index, arguments_delta=arguments[middle:]),
        ]))
    chunks.append(CompletionChunk(usage=usage, finish_reason="tool_calls"))
    return chunks


class ScriptedProvider(CompletionProvider):
    """Completion provider replaying one scripted response per request.

    A script entry is a list of chunks, or an exception raised after the
    chunks listed before it have been streamed.
    """

    def __init__(self, script: List[Any]):
        self.script = list(script)
        self.requests: List[Dict[str, Any]] = []
        super().__init__(LLMConfig(api_key="test-key"))

    def validate_config(self) -> None:
        pass

    async def stream_completion(self, messages, tools, system_prompt=None) -> AsyncIterator[CompletionChunk]:
        self.requests.append({"messages": messages, "tools": tools, "system_prompt": system_prompt})
        if not self.script:
            raise AssertionError("Provider received more requests than scripted")
        for item in self.script.pop(0):
            if isinstance(item, BaseException):
                raise item
            yield item


class FakeArchiveClient(ArchiveClient):
    """In-memory archive holding one dandiset version."""

    def __init__(self, metadata: Dict[str, Any], fail_commit: Optional[Exception] = None):
        self.metadata = copy.deepcopy(metadata)
        self.fail_commit = fail_commit
        self.fail_fetch: Optional[Exception] = None
        self.commits: List[Dict[str, Any]] = []

    async def fetch_version_info(self, dandiset_id, version, api_key=None) -> DandisetVersionInfo:
        if self.fail_fetch is not None:
            raise self.fail_fetch
        if dandiset_id != "000003":
            raise NetworkException("DANDISET_NOT_FOUND", f"Dandiset {dandiset_id} version {version} not found",
                                   {"status": 404})
        return DandisetVersionInfo(
            version=version, name=self.metadata["name"], status="Valid", metadata=copy.deepcopy(self.metadata)
        )

    async def commit_metadata(self, dandiset_id, version, metadata, api_key) -> Dict[str, Any]:
        if self.fail_commit is not None:
            raise self.fail_commit
        self.commits.append({"dandiset_id": dandiset_id, "version": version, "metadata": metadata})
        self.metadata = copy.deepcopy(metadata)
        return {"version": version, "name": metadata.get("name")}


@pytest.fixture
def sample_metadata() -> Dict[str, Any]:
    return copy.deepcopy(SAMPLE_METADATA)


@pytest.fixture
def config() -> AssistantConfig:
    return AssistantConfig(lookup_config=LookupConfig(verify_identifiers=False))


@pytest.fixture
def context(sample_metadata, config) -> ToolExecutionContext:
    return ToolExecutionContext(
        get_base_document=lambda: sample_metadata,
        changeset=ChangeSet(),
        validator=SchemaValidator(config.validator_config),
        identifier_validator=IdentifierValidator(config.lookup_config),
        ontology_lookup=OntologyLookup(config.lookup_config),
        config=config,
    )


@pytest.fixture
def executor(context) -> ToolExecutor:
    return ToolExecutor(create_tool_registry(include_session_tools=True), context)


@pytest.fixture
def archive(sample_metadata) -> FakeArchiveClient:
    return FakeArchiveClient(sample_metadata)


@pytest.fixture
def make_session(config, archive):
    """Build a session around a scripted provider with the sample dandiset loaded."""

    def factory(
        script: Optional[List[Any]] = None, session_tools: bool = False, **config_updates
    ) -> EditingSession:
        session_config = config.model_copy(update=config_updates)
        session = EditingSession(
            session_config,
            provider=ScriptedProvider(script or []),
            archive_client=archive,
            registry=create_tool_registry(include_session_tools=session_tools),
        )
        session.set_document(archive.metadata, "000003", "draft")
        return session

    return factory
