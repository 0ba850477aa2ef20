"""Chat turn state machine: completion requests, tool rounds and their bound."""

import asyncio
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, SerializeAsAny

from ..models.chat import ChatMessage, ChatTranscript, CompletionChunk, TokenUsage, ToolCall
from ..models.errors import ErrorResponse, LLMException, MetadataAssistantException, SessionError
from ..utils.error_handler import handle_error
from ..utils.logging_config import log_performance_metrics
from .interface import CompletionProvider

if TYPE_CHECKING:
    from ..tools.registry import ToolExecutor

logger = logging.getLogger(__name__)

NOT_EXECUTED_CONTENT = (
    '{"success": false, "error": "Tool call was not executed: the limit of consecutive tool rounds was reached"}'
)


class OrchestratorState(str, Enum):
    IDLE = "idle"
    AWAITING_COMPLETION = "awaiting_completion"
    STREAMING_TEXT = "streaming_text"
    EXECUTING_TOOLS = "executing_tools"
    ERROR = "error"


class TurnResult(BaseModel):
    """Outcome of one user turn.

    ``messages`` lists what the turn appended to the transcript. ``error`` is
    set when the turn ended in the ERROR state, ``stop_notice`` when the tool
    round bound cut it short.
    """

    messages: List[ChatMessage] = Field(default_factory=list)
    stop_notice: Optional[str] = None
    error: Optional[SerializeAsAny[ErrorResponse]] = None
    state: OrchestratorState = OrchestratorState.IDLE
    tool_rounds: int = 0
    usage: TokenUsage = Field(default_factory=TokenUsage)

    @property
    def succeeded(self) -> bool:
        return self.error is None


class _StreamFold:
    """Accumulates streamed fragments into one assistant message."""

    def __init__(self):
        self.content_parts: List[str] = []
        self.calls: Dict[int, Dict[str, str]] = {}
        self.usage: Optional[TokenUsage] = None

    def add(self, chunk: CompletionChunk) -> None:
        if chunk.content_delta:
            self.content_parts.append(chunk.content_delta)
        for delta in chunk.tool_call_deltas:
            slot = self.calls.setdefault(delta.index, {"id": "", "name": "", "arguments": ""})
            if delta.id:
                slot["id"] = delta.id
            if delta.function_name:
                slot["name"] += delta.function_name
            slot["arguments"] += delta.arguments_delta
        if chunk.usage is not None:
            self.usage = chunk.usage

    @property
    def text(self) -> Optional[str]:
        return "".join(self.content_parts) or None

    def partial(self) -> ChatMessage:
        return ChatMessage(role="assistant", content=self.text)

    def finish(self) -> ChatMessage:
        """Build the completed assistant message.

        Raises:
            LLMException: If a streamed tool call never received a name
        """
        tool_calls = []
        for index in sorted(self.calls):
            slot = self.calls[index]
            if not slot["name"]:
                raise LLMException(
                    "MALFORMED_TOOL_CALL",
                    f"Provider streamed tool call #{index} without a function name",
                    {"index": index},
                )
            tool_calls.append(ToolCall(
                id=slot["id"] or f"call_{index}",
                function_name=slot["name"],
                arguments_json=slot["arguments"] or "{}",
            ))
        return ChatMessage(role="assistant", content=self.text, tool_calls=tool_calls, usage=self.usage)


class ChatOrchestrator:
    """Drives one chat turn from user message to final assistant reply.

    Tool calls run strictly one after another, so each proposal is validated
    against the pending changes staged by the calls before it. An assistant
    message that requested tools is committed to the transcript together with
    all of its tool results, keeping the transcript well formed if the round
    is cancelled.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        executor: "ToolExecutor",
        transcript: ChatTranscript,
        system_prompt_builder: Optional[Callable[[], str]] = None,
        max_tool_rounds: int = 5,
        on_partial: Optional[Callable[[ChatMessage], None]] = None,
    ):
        self.provider = provider
        self.executor = executor
        self.transcript = transcript
        self.system_prompt_builder = system_prompt_builder
        self.max_tool_rounds = max_tool_rounds
        self.on_partial = on_partial

        self.state = OrchestratorState.IDLE
        self.last_error: Optional[ErrorResponse] = None
        self.partial_message: Optional[ChatMessage] = None
        self._task: Optional[asyncio.Task] = None

    async def submit_user_message(self, text: str) -> TurnResult:
        """Run a complete turn for a user message.

        Args:
            text: The user's message

        Returns:
            TurnResult; failures are reported in ``error``, never raised

        Raises:
            asyncio.CancelledError: If the turn was cancelled
        """
        if self.state != OrchestratorState.IDLE:
            return self._rejected()
        if not text or not text.strip():
            return TurnResult(
                error=SessionError(error_code="EMPTY_MESSAGE", message="Message cannot be empty"),
                state=self.state,
            )

        result = TurnResult()
        start_time = time.time()
        self._commit(ChatMessage.user(text), result)

        try:
            await self._run_rounds(result)
        except asyncio.CancelledError:
            logger.info("Chat turn cancelled")
            self.partial_message = None
            self.state = OrchestratorState.IDLE
            raise
        except MetadataAssistantException as e:
            self._fail(e, result)
        except Exception as e:
            logger.exception("Unexpected error during chat turn")
            self._fail(e, result)
        else:
            self.state = OrchestratorState.IDLE

        result.state = self.state
        log_performance_metrics(
            logger, "chat_turn", time.time() - start_time,
            tool_rounds=result.tool_rounds,
            prompt_tokens=result.usage.prompt_tokens,
            completion_tokens=result.usage.completion_tokens,
        )
        return result

    def start_turn(self, text: str) -> asyncio.Task:
        """Schedule a turn as a task that ``cancel`` can abort."""
        self._task = asyncio.ensure_future(self.submit_user_message(text))
        return self._task

    def cancel(self) -> bool:
        """Cancel the running turn, if any.

        Returns:
            True if a running turn was asked to stop
        """
        if self._task is None or self._task.done():
            return False
        return self._task.cancel()

    def acknowledge_error(self) -> Optional[ErrorResponse]:
        """Leave the ERROR state and return the error that caused it."""
        error = self.last_error
        if self.state == OrchestratorState.ERROR:
            self.state = OrchestratorState.IDLE
            self.last_error = None
        return error

    @property
    def is_busy(self) -> bool:
        return self.state not in (OrchestratorState.IDLE, OrchestratorState.ERROR)

    async def _run_rounds(self, result: TurnResult) -> None:
        while True:
            assistant = await self._request_completion()

            if not assistant.tool_calls:
                self._commit(assistant, result)
                return

            if result.tool_rounds >= self.max_tool_rounds:
                self._commit(assistant, result)
                for call in assistant.tool_calls:
                    self._commit(ChatMessage.tool_result(call.id, NOT_EXECUTED_CONTENT), result)
                result.stop_notice = (
                    f"Stopped after {self.max_tool_rounds} consecutive tool rounds. "
                    "Send another message to let the assistant continue."
                )
                logger.warning(f"Tool round limit ({self.max_tool_rounds}) reached, turn stopped")
                return

            self.state = OrchestratorState.EXECUTING_TOOLS
            tool_messages = []
            for call in assistant.tool_calls:
                tool_result = await self.executor.execute(call)
                tool_messages.append(ChatMessage.tool_result(call.id, tool_result.to_content()))

            self._commit(assistant, result)
            for message in tool_messages:
                self._commit(message, result)
            result.tool_rounds += 1

    async def _request_completion(self) -> ChatMessage:
        self.state = OrchestratorState.AWAITING_COMPLETION
        system_prompt = self.system_prompt_builder() if self.system_prompt_builder else None
        fold = _StreamFold()

        stream = self.provider.stream_completion(
            self.transcript.to_provider_messages(),
            self.executor.registry.declarations(),
            system_prompt,
        )
        try:
            async for chunk in stream:
                fold.add(chunk)
                if chunk.content_delta:
                    self.state = OrchestratorState.STREAMING_TEXT
                    self.partial_message = fold.partial()
                    if self.on_partial:
                        self.on_partial(self.partial_message)
        finally:
            self.partial_message = None
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        return fold.finish()

    def _commit(self, message: ChatMessage, result: TurnResult) -> None:
        self.transcript.append(message)
        result.messages.append(message)
        if message.usage:
            result.usage = result.usage + message.usage

    def _fail(self, error: Exception, result: TurnResult) -> None:
        self.partial_message = None
        self.state = OrchestratorState.ERROR
        self.last_error = handle_error(error)
        result.error = self.last_error
        logger.error(f"Chat turn failed: {self.last_error.error_code}: {self.last_error.message}")

    def _rejected(self) -> TurnResult:
        if self.state == OrchestratorState.ERROR:
            error = SessionError(
                error_code="ERROR_NOT_ACKNOWLEDGED",
                message="The previous turn failed; acknowledge the error before sending another message",
                details={"previous_error": self.last_error.message if self.last_error else None},
            )
        else:
            error = SessionError(
                error_code="ORCHESTRATOR_BUSY",
                message="A turn is already in progress",
                details={"state": self.state.value},
            )
        return TurnResult(error=error, state=self.state)
