"""Tests for the chat turn state machine."""

import asyncio
import json
from typing import Any, Dict

import pytest

from metadata_assistant.models.chat import ChatTranscript, CompletionChunk, TokenUsage, ToolCallDelta
from metadata_assistant.models.errors import LLMException
from metadata_assistant.services.chat_orchestrator import (
    NOT_EXECUTED_CONTENT, ChatOrchestrator, OrchestratorState,
)
from metadata_assistant.services.interface import CompletionProvider
from metadata_assistant.config.models import LLMConfig
from metadata_assistant.tools.registry import BaseTool, ToolExecutor, ToolRegistry

from .conftest import ScriptedProvider, text_chunks, tool_call_chunks


def propose_call(call_id: str, path: str, value: Any) -> Dict[str, str]:
    return {
        "id": call_id,
        "name": "propose_metadata_change",
        "arguments": json.dumps({"path": path, "newValue": value}),
    }


class BlockingProvider(CompletionProvider):
    """Streams one fragment, then waits until released."""

    def __init__(self):
        super().__init__(LLMConfig(api_key="test-key"))
        self.streaming = asyncio.Event()
        self.release = asyncio.Event()

    def validate_config(self) -> None:
        pass

    async def stream_completion(self, messages, tools, system_prompt=None):
        yield CompletionChunk(content_delta="Thinking")
        self.streaming.set()
        await self.release.wait()
        yield CompletionChunk(content_delta=" done")


class BlockingTool(BaseTool):
    name = "slow_tool"
    description = "Waits until released"

    def __init__(self):
        self.started = asyncio.Event()

    async def execute(self, params, context):
        self.started.set()
        await asyncio.Event().wait()


@pytest.fixture
def transcript():
    return ChatTranscript(model="test-model")


def make_orchestrator(script, executor, transcript, **kwargs) -> ChatOrchestrator:
    return ChatOrchestrator(ScriptedProvider(script), executor, transcript, **kwargs)


async def test_text_reply(executor, transcript):
    partials = []
    usage = TokenUsage(prompt_tokens=120, completion_tokens=8)
    orchestrator = make_orchestrator(
        [text_chunks("Hello there", usage)], executor, transcript,
        system_prompt_builder=lambda: "You edit metadata.",
        on_partial=lambda message: partials.append(message.content),
    )

    result = await orchestrator.submit_user_message("Hi")

    assert result.succeeded
    assert result.state == OrchestratorState.IDLE
    assert [m.role for m in result.messages] == ["user", "assistant"]
    assert result.messages[1].content == "Hello there"
    assert result.usage.prompt_tokens == 120
    assert transcript.total_usage.completion_tokens == 8
    assert partials == ["Hello", "Hello there"]
    assert orchestrator.partial_message is None

    request = orchestrator.provider.requests[0]
    assert request["system_prompt"] == "You edit metadata."
    assert request["messages"] == [{"role": "user", "content": "Hi"}]
    assert {tool["function"]["name"] for tool in request["tools"]} >= {"propose_metadata_change", "fetch_url"}


async def test_tool_round(executor, transcript):
    script = [
        tool_call_chunks([propose_call("call_1", "name", "Hippocampal recordings")],
                         TokenUsage(prompt_tokens=100, completion_tokens=20)),
        text_chunks("I proposed a new title.", TokenUsage(prompt_tokens=150, completion_tokens=10)),
    ]
    orchestrator = make_orchestrator(script, executor, transcript)

    result = await orchestrator.submit_user_message("Improve the title")

    assert result.succeeded
    assert result.tool_rounds == 1
    assert [m.role for m in transcript.messages] == ["user", "assistant", "tool", "assistant"]
    call = transcript.messages[1].tool_calls[0]
    assert call.id == "call_1"
    assert json.loads(call.arguments_json) == {"path": "name", "newValue": "Hippocampal recordings"}

    tool_message = transcript.messages[2]
    assert tool_message.tool_call_id == "call_1"
    assert json.loads(tool_message.content)["success"] is True
    assert executor.context.effective_document()["name"] == "Hippocampal recordings"
    assert result.usage.prompt_tokens == 250

    second_request = orchestrator.provider.requests[1]["messages"]
    assert second_request[1]["tool_calls"][0]["function"]["name"] == "propose_metadata_change"
    assert second_request[2] == {"role": "tool", "content": tool_message.content, "tool_call_id": "call_1"}


async def test_calls_run_in_order_against_staged_changes(executor, transcript):
    script = [
        tool_call_chunks([
            propose_call("call_1", "keywords.2", "CA1"),
            propose_call("call_2", "keywords.3", "place cells"),
        ]),
        text_chunks("Added two keywords."),
    ]
    orchestrator = make_orchestrator(script, executor, transcript)

    result = await orchestrator.submit_user_message("Add keywords")

    assert result.succeeded
    assert [m.tool_call_id for m in transcript.messages if m.role == "tool"] == ["call_1", "call_2"]
    assert executor.context.effective_document()["keywords"] == ["hippocampus", "mouse", "CA1", "place cells"]


async def test_rejected_proposal_is_reported_to_the_model(executor, transcript):
    script = [
        tool_call_chunks([propose_call("call_1", "contributor", [])]),
        text_chunks("That change is not allowed."),
    ]
    orchestrator = make_orchestrator(script, executor, transcript)

    result = await orchestrator.submit_user_message("Remove all contributors")

    assert result.succeeded
    body = json.loads(transcript.messages[2].content)
    assert body["success"] is False
    assert body["error"].startswith("Proposed change failed validation")
    assert len(executor.context.changeset) == 0


async def test_unknown_tool_does_not_end_the_turn(executor, transcript):
    script = [
        tool_call_chunks([{"id": "call_x", "name": "delete_dandiset", "arguments": "{}"}]),
        text_chunks("I cannot do that."),
    ]
    orchestrator = make_orchestrator(script, executor, transcript)

    result = await orchestrator.submit_user_message("Delete it")

    assert result.succeeded
    body = json.loads(transcript.messages[2].content)
    assert body["errorCode"] == "UNKNOWN_TOOL"
    assert body["hint"].startswith("Available tools: ")


async def test_tool_round_bound(executor, transcript):
    script = [
        tool_call_chunks([propose_call("call_1", "name", "First")]),
        tool_call_chunks([propose_call("call_2", "description", "Second")]),
    ]
    orchestrator = make_orchestrator(script, executor, transcript, max_tool_rounds=1)

    result = await orchestrator.submit_user_message("Keep editing")

    assert result.succeeded
    assert result.tool_rounds == 1
    assert result.stop_notice.startswith("Stopped after 1 consecutive tool rounds.")
    assert len(orchestrator.provider.requests) == 2
    assert [m.role for m in transcript.messages] == ["user", "assistant", "tool", "assistant", "tool"]
    assert transcript.messages[4].tool_call_id == "call_2"
    assert transcript.messages[4].content == NOT_EXECUTED_CONTENT

    document = executor.context.effective_document()
    assert document["name"] == "First"
    assert document["description"] != "Second"
    assert orchestrator.state == OrchestratorState.IDLE


async def test_provider_error_enters_error_state(executor, transcript):
    script = [[LLMException("PROVIDER_HTTP_ERROR", "Completion provider returned HTTP 401", {"status": 401})]]
    orchestrator = make_orchestrator(script, executor, transcript)

    result = await orchestrator.submit_user_message("Hi")

    assert not result.succeeded
    assert result.state == OrchestratorState.ERROR
    assert result.error.error_type == "llm"
    assert result.error.error_code == "PROVIDER_HTTP_ERROR"
    assert [m.role for m in transcript.messages] == ["user"]

    rejected = await orchestrator.submit_user_message("Again")
    assert rejected.error.error_code == "ERROR_NOT_ACKNOWLEDGED"
    assert len(orchestrator.provider.requests) == 1
    assert len(transcript) == 1

    acknowledged = orchestrator.acknowledge_error()
    assert acknowledged.error_code == "PROVIDER_HTTP_ERROR"
    assert orchestrator.state == OrchestratorState.IDLE
    assert orchestrator.last_error is None


async def test_error_after_partial_text_discards_it(executor, transcript):
    script = [[CompletionChunk(content_delta="Let me"), LLMException("STREAM_INTERRUPTED", "Stream ended early")]]
    orchestrator = make_orchestrator(script, executor, transcript)

    result = await orchestrator.submit_user_message("Hi")

    assert result.error.error_code == "STREAM_INTERRUPTED"
    assert orchestrator.partial_message is None
    assert [m.role for m in transcript.messages] == ["user"]


async def test_unexpected_exception_is_contained(executor, transcript):
    orchestrator = make_orchestrator([[RuntimeError("socket closed")]], executor, transcript)

    result = await orchestrator.submit_user_message("Hi")

    assert result.state == OrchestratorState.ERROR
    assert result.error.error_code == "INTERNAL_ERROR"


async def test_nameless_tool_call_is_malformed(executor, transcript):
    script = [[CompletionChunk(tool_call_deltas=[ToolCallDelta(index=0, arguments_delta="{}")])]]
    orchestrator = make_orchestrator(script, executor, transcript)

    result = await orchestrator.submit_user_message("Hi")

    assert result.error.error_code == "MALFORMED_TOOL_CALL"
    assert [m.role for m in transcript.messages] == ["user"]


async def test_missing_call_id_gets_a_positional_one(executor, transcript):
    script = [
        [CompletionChunk(tool_call_deltas=[
            ToolCallDelta(index=0, function_name="list_pending_changes", arguments_delta="{}"),
        ])],
        text_chunks("Nothing pending."),
    ]
    orchestrator = make_orchestrator(script, executor, transcript)

    await orchestrator.submit_user_message("What changed?")

    assert transcript.messages[1].tool_calls[0].id == "call_0"
    assert transcript.messages[2].tool_call_id == "call_0"


async def test_empty_message_is_rejected(executor, transcript):
    orchestrator = make_orchestrator([], executor, transcript)

    result = await orchestrator.submit_user_message("   ")

    assert result.error.error_code == "EMPTY_MESSAGE"
    assert len(transcript) == 0
    assert orchestrator.state == OrchestratorState.IDLE


async def test_busy_while_streaming_then_cancel(executor, transcript):
    provider = BlockingProvider()
    orchestrator = ChatOrchestrator(provider, executor, transcript)

    task = orchestrator.start_turn("Hi")
    await provider.streaming.wait()

    assert orchestrator.state == OrchestratorState.STREAMING_TEXT
    assert orchestrator.is_busy
    assert orchestrator.partial_message.content == "Thinking"

    busy = await orchestrator.submit_user_message("Another")
    assert busy.error.error_code == "ORCHESTRATOR_BUSY"

    assert orchestrator.cancel() is True
    with pytest.raises(asyncio.CancelledError):
        await task

    assert orchestrator.state == OrchestratorState.IDLE
    assert orchestrator.partial_message is None
    assert [m.role for m in transcript.messages] == ["user"]
    assert orchestrator.cancel() is False


async def test_cancel_during_tool_round_leaves_no_partial_round(context, transcript):
    tool = BlockingTool()
    executor = ToolExecutor(ToolRegistry([tool]), context)
    script = [tool_call_chunks([{"id": "call_1", "name": "slow_tool", "arguments": "{}"}])]
    orchestrator = make_orchestrator(script, executor, transcript)

    task = orchestrator.start_turn("Go")
    await tool.started.wait()
    assert orchestrator.state == OrchestratorState.EXECUTING_TOOLS

    orchestrator.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert [m.role for m in transcript.messages] == ["user"]
    assert orchestrator.state == OrchestratorState.IDLE
