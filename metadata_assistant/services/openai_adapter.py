"""OpenAI-compatible completion provider (OpenAI, OpenRouter)."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from .interface import CompletionProvider
from ..config.models import LLMConfig
from ..models.chat import CompletionChunk, TokenUsage, ToolCallDelta
from ..models.errors import LLMException, NetworkException


class OpenAICompletionProvider(CompletionProvider):
    """Streaming provider built on the OpenAI SDK.

    Any OpenAI-compatible API can be targeted through ``base_url``; the
    default points at OpenRouter, which also reports per-request cost.
    """

    def __init__(self, config: LLMConfig, client: Optional[AsyncOpenAI] = None):
        """Initialize the provider with configuration."""
        super().__init__(config)
        self.logger = logging.getLogger(__name__)
        self.client = client or AsyncOpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_retries=0,
            default_headers=self.config.custom_headers,
        )

    def validate_config(self) -> None:
        """Validate OpenAI-specific configuration."""
        if not self.config.api_key:
            raise ValueError("API key is required for OpenAI provider")

        if not self.config.model:
            raise ValueError("Model name is required for OpenAI provider")

    async def stream_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[CompletionChunk]:
        """Stream a chat completion, translating SDK chunks to CompletionChunk."""
        request: Dict[str, Any] = {
            "model": self.config.model,
            "messages": self.build_messages(messages, system_prompt),
            "temperature": self.config.temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            request["tools"] = tools

        try:
            stream = await self.client.chat.completions.create(**request)
        except openai.APIError as e:
            raise self._translate_error(e)

        try:
            async for chunk in stream:
                yield self._to_chunk(chunk)
        except openai.APIError as e:
            raise self._translate_error(e)
        finally:
            await stream.close()

    def _to_chunk(self, chunk: Any) -> CompletionChunk:
        content = ""
        deltas: List[ToolCallDelta] = []
        finish_reason = None

        if chunk.choices:
            choice = chunk.choices[0]
            finish_reason = choice.finish_reason
            delta = choice.delta
            if delta is not None:
                content = delta.content or ""
                for call in delta.tool_calls or []:
                    function = call.function
                    deltas.append(ToolCallDelta(
                        index=call.index,
                        id=call.id,
                        function_name=function.name if function else None,
                        arguments_delta=(function.arguments or "") if function else "",
                    ))

        usage = None
        if chunk.usage is not None:
            # OpenRouter adds a non-standard ``cost`` field
            cost = getattr(chunk.usage, "cost", None) or 0.0
            usage = TokenUsage(
                prompt_tokens=chunk.usage.prompt_tokens or 0,
                completion_tokens=chunk.usage.completion_tokens or 0,
                estimated_cost=float(cost),
            )

        return CompletionChunk(
            content_delta=content,
            tool_call_deltas=deltas,
            usage=usage,
            finish_reason=finish_reason,
        )

    def _translate_error(self, error: Exception) -> Exception:
        if isinstance(error, (openai.APIConnectionError, openai.APITimeoutError)):
            self.logger.error(f"Completion provider unreachable: {error}")
            return NetworkException(
                "PROVIDER_UNREACHABLE",
                f"Could not reach the completion provider: {error}",
                {"url": str(self.client.base_url)},
            )
        if isinstance(error, openai.APIStatusError):
            self.logger.error(f"Completion provider returned HTTP {error.status_code}: {error}")
            return LLMException(
                "PROVIDER_HTTP_ERROR",
                f"Completion provider returned HTTP {error.status_code}: {error.message}",
                {"status": error.status_code, "provider": self.get_provider_name()},
            )
        self.logger.error(f"Completion provider error: {error}")
        return LLMException("PROVIDER_ERROR", f"Completion request failed: {error}")

    async def aclose(self) -> None:
        await self.client.close()
