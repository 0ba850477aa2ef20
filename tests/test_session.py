"""Tests for the editing session: load, chat, commit."""

import pytest

from metadata_assistant.config.models import AssistantConfig, LLMConfig, LookupConfig
from metadata_assistant.models.core import MISSING
from metadata_assistant.models.errors import NetworkException, SessionException
from metadata_assistant.services.session import EditingSession

from .conftest import ScriptedProvider, text_chunks


@pytest.fixture
def session(make_session):
    return make_session()


class TestLoad:
    async def test_load(self, config, archive, sample_metadata):
        session = EditingSession(config, provider=ScriptedProvider([]), archive_client=archive)
        assert not session.is_loaded

        info = await session.load("000003")

        assert info.name == sample_metadata["name"]
        assert session.base_document == sample_metadata
        assert session.dandiset_id == "000003"
        assert session.version == "draft"

    async def test_load_missing_dandiset_keeps_state(self, session, sample_metadata):
        session.changeset.propose("name", "Pending", session.base_document)

        with pytest.raises(NetworkException) as exc_info:
            await session.load("999999")

        assert exc_info.value.error_code == "DANDISET_NOT_FOUND"
        assert session.dandiset_id == "000003"
        assert len(session.changeset) == 1

    async def test_reload_discards_pending_changes(self, session):
        session.changeset.propose("name", "Pending", session.base_document)
        await session.load("000003")
        assert len(session.changeset) == 0

    def test_base_document_is_a_copy(self, session, archive):
        session.base_document["name"] = "Mutated"
        assert archive.metadata["name"] != "Mutated"

    async def test_switching_dandiset_resets_chat(self, make_session):
        session = make_session([text_chunks("Hello!")])
        await session.chat("Hi")
        assert len(session.transcript) == 2

        session.set_document({"id": "DANDI:000004/draft"}, "000004")
        assert len(session.transcript) == 0

    async def test_same_dandiset_keeps_chat(self, make_session, sample_metadata):
        session = make_session([text_chunks("Hello!")])
        await session.chat("Hi")

        session.set_document(sample_metadata, "000003")
        assert len(session.transcript) == 2


class TestChat:
    async def test_chat_turn(self, make_session):
        session = make_session([text_chunks("Your title looks fine.")])

        result = await session.chat("Is the title OK?")

        assert result.succeeded
        assert result.messages[-1].content == "Your title looks fine."
        prompt = session.provider.requests[0]["system_prompt"]
        assert "Dandiset ID: 000003" in prompt
        assert "No modifications have been made to the metadata." in prompt
        assert "## propose_metadata_change" in prompt

    async def test_prompt_shows_pending_changes(self, session):
        session.changeset.propose("name", "Renamed dataset", session.base_document)
        prompt = session.build_system_prompt()
        assert "Current (modified) Metadata (JSON)" in prompt
        assert "Renamed dataset" in prompt

    async def test_unconfigured_provider(self, archive, sample_metadata):
        config = AssistantConfig(llm_config=LLMConfig(api_key=None))
        session = EditingSession(config, archive_client=archive)
        session.set_document(sample_metadata, "000003")

        result = await session.chat("Hi")

        assert result.error.error_code == "PROVIDER_NOT_CONFIGURED"
        assert session.chat_state == "idle"

    async def test_chat_error_must_be_acknowledged(self, make_session):
        session = make_session([[RuntimeError("boom")]])

        first = await session.chat("Hi")
        assert first.error.error_code == "INTERNAL_ERROR"
        assert session.chat_state == "error"

        acknowledged = session.acknowledge_chat_error()
        assert acknowledged.error_code == "INTERNAL_ERROR"
        assert session.chat_state == "idle"

    async def test_reset_keeps_document(self, make_session, sample_metadata):
        session = make_session([text_chunks("Hello!")])
        await session.chat("Hi")
        session.changeset.propose("name", "x", session.base_document)

        session.reset()

        assert len(session.transcript) == 0
        assert len(session.changeset) == 0
        assert session.base_document == sample_metadata


class TestValidate:
    def test_effective_document_is_validated(self, session):
        session.changeset.propose("name", "", session.base_document)
        result = session.validate()
        assert not result.valid
        assert result.errors[0].keyword == "minLength"

    def test_nothing_loaded(self, config):
        with pytest.raises(SessionException) as exc_info:
            EditingSession(config).validate()
        assert exc_info.value.error_code == "NO_DOCUMENT"


class TestCommit:
    async def test_commit(self, session, archive):
        session.changeset.propose("name", "Hippocampal recordings", session.base_document)
        session.changeset.propose("keywords.2", "CA1", session.base_document)

        outcome = await session.commit(api_key="secret")

        assert outcome.success
        assert outcome.committed_changes == 2
        assert outcome.refreshed
        assert len(session.changeset) == 0
        assert session.base_document["name"] == "Hippocampal recordings"
        assert archive.commits[0]["metadata"]["keywords"] == ["hippocampus", "mouse", "CA1"]

    async def test_configured_api_key(self, make_session, archive, config):
        session = make_session(archive_config=config.archive_config.model_copy(update={"api_key": "configured"}))
        session.changeset.propose("name", "New", session.base_document)

        outcome = await session.commit()

        assert outcome.success
        assert len(archive.commits) == 1

    async def test_no_document(self, config, archive):
        outcome = await EditingSession(config, archive_client=archive).commit(api_key="secret")
        assert not outcome.success
        assert outcome.error.error_code == "NO_DOCUMENT"

    async def test_no_changes(self, session, archive):
        outcome = await session.commit(api_key="secret")
        assert outcome.error.error_code == "NO_CHANGES"
        assert archive.commits == []

    async def test_missing_api_key(self, session, archive):
        session.changeset.propose("name", "New", session.base_document)
        outcome = await session.commit()
        assert outcome.error.error_code == "MISSING_API_KEY"
        assert len(session.changeset) == 1

    async def test_invalid_document_is_not_sent(self, session, archive):
        session.changeset.propose("description", MISSING, session.base_document)

        outcome = await session.commit(api_key="secret")

        assert not outcome.success
        assert outcome.error.error_code == "INVALID_METADATA"
        assert outcome.error.field_errors == {"/description": ["Missing required field: description"]}
        assert archive.commits == []
        assert len(session.changeset) == 1

    async def test_archive_rejection_changes_nothing(self, session, archive, sample_metadata):
        archive.fail_commit = NetworkException(
            "COMMIT_REJECTED", "Archive rejected the metadata update: HTTP 400", {"status": 400}
        )
        session.changeset.propose("name", "New", session.base_document)

        outcome = await session.commit(api_key="secret")

        assert not outcome.success
        assert outcome.error.error_type == "network"
        assert outcome.error.error_code == "COMMIT_REJECTED"
        assert len(session.changeset) == 1
        assert session.base_document == sample_metadata

    async def test_refetch_failure_keeps_committed_document(self, session, archive):
        archive.fail_fetch = NetworkException("ARCHIVE_UNREACHABLE", "Could not reach the archive")
        session.changeset.propose("name", "New", session.base_document)
        expected = session.effective_document()

        outcome = await session.commit(api_key="secret")

        assert outcome.success
        assert not outcome.refreshed
        assert session.base_document == expected
        assert len(session.changeset) == 0

    async def test_identifier_check_does_not_run_on_commit(self, make_session):
        session = make_session(lookup_config=LookupConfig(verify_identifiers=True))
        session.changeset.propose("contributor.0.identifier", "0000-0000-0000-0000", session.base_document)
        outcome = await session.commit(api_key="secret")
        assert outcome.success
