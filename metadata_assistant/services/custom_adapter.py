"""Custom completion provider for self-hosted OpenAI-style endpoints."""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp

from .interface import CompletionProvider
from ..config.models import LLMConfig
from ..models.chat import CompletionChunk, TokenUsage, ToolCallDelta
from ..models.errors import LLMException, NetworkException


class CustomCompletionProvider(CompletionProvider):
    """Streaming provider that talks server-sent events to a custom endpoint.

    The endpoint is expected to accept an OpenAI chat-completions request
    body and answer with ``data: {...}`` lines terminated by ``data: [DONE]``.
    """

    def __init__(self, config: LLMConfig):
        """Initialize custom provider with configuration."""
        super().__init__(config)
        self.logger = logging.getLogger(__name__)

        self.headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            "User-Agent": "metadata-assistant/1.0",
        }

        if self.config.api_key:
            self.headers["Authorization"] = f"Bearer {self.config.api_key}"

        if self.config.custom_headers:
            self.headers.update(self.config.custom_headers)

    def validate_config(self) -> None:
        """Validate custom provider configuration."""
        if not self.config.endpoint:
            raise ValueError("Endpoint URL is required for custom provider")

        if not self.config.model:
            raise ValueError("Model name is required for custom provider")

        if not (self.config.endpoint.startswith('http://') or
                self.config.endpoint.startswith('https://')):
            raise ValueError("Endpoint must be a valid HTTP/HTTPS URL")

    async def stream_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[CompletionChunk]:
        """Stream a chat completion from the custom endpoint."""
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": self.build_messages(messages, system_prompt),
            "temperature": self.config.temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            payload["tools"] = tools

        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.config.endpoint, headers=self.headers, json=payload) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        self.logger.error(f"Custom endpoint returned HTTP {response.status}: {error_text[:500]}")
                        raise LLMException(
                            "CUSTOM_API_ERROR",
                            f"Custom completion endpoint returned HTTP {response.status}",
                            {"status": response.status, "body": error_text[:500]},
                        )

                    async for raw_line in response.content:
                        line = raw_line.decode("utf-8").strip()
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if data == "[DONE]":
                            break
                        yield self._parse_event(data)

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Custom completion endpoint unreachable: {e}")
            raise NetworkException(
                "PROVIDER_UNREACHABLE",
                f"Could not reach the completion endpoint: {e}",
                {"url": self.config.endpoint},
            )

    def _parse_event(self, data: str) -> CompletionChunk:
        """Translate one SSE data payload into a CompletionChunk.

        Raises:
            LLMException: If the payload is not valid JSON or reports an error
        """
        try:
            event = json.loads(data)
        except json.JSONDecodeError as e:
            raise LLMException("CUSTOM_PARSE_ERROR", f"Malformed stream event from custom endpoint: {e}")

        if "error" in event:
            error = event["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise LLMException("CUSTOM_STREAM_ERROR", f"Custom endpoint reported an error: {message}")

        content = ""
        deltas: List[ToolCallDelta] = []
        finish_reason = None

        choices = event.get("choices") or []
        if choices:
            choice = choices[0]
            finish_reason = choice.get("finish_reason")
            delta = choice.get("delta") or {}
            content = delta.get("content") or ""
            for position, call in enumerate(delta.get("tool_calls") or []):
                function = call.get("function") or {}
                deltas.append(ToolCallDelta(
                    index=call.get("index", position),
                    id=call.get("id"),
                    function_name=function.get("name"),
                    arguments_delta=function.get("arguments") or "",
                ))

        usage = None
        if event.get("usage"):
            raw = event["usage"]
            usage = TokenUsage(
                prompt_tokens=raw.get("prompt_tokens") or 0,
                completion_tokens=raw.get("completion_tokens") or 0,
                estimated_cost=float(raw.get("cost") or 0.0),
            )

        return CompletionChunk(
            content_delta=content,
            tool_call_deltas=deltas,
            usage=usage,
            finish_reason=finish_reason,
        )
