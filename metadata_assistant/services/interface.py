"""Abstract interface for completion providers."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

from ..config.models import LLMConfig
from ..models.chat import CompletionChunk


class CompletionProvider(ABC):
    """Abstract base class for streaming chat-completion providers."""

    def __init__(self, config: LLMConfig):
        """Initialize the provider with configuration.

        Args:
            config: LLM configuration containing provider-specific settings
        """
        self.config = config
        self.validate_config()

    @abstractmethod
    def validate_config(self) -> None:
        """Validate provider-specific configuration.

        Raises:
            ValueError: If configuration is invalid or missing required fields
        """
        pass

    @abstractmethod
    def stream_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[CompletionChunk]:
        """Request a completion and stream it back fragment by fragment.

        The returned iterator is finite and cannot be restarted. Closing it
        (or cancelling the task consuming it) aborts the underlying request.

        Args:
            messages: Transcript in OpenAI-compatible wire format
            tools: Tool declarations in OpenAI function-tool format
            system_prompt: Optional system message prepended to the transcript

        Returns:
            Async iterator of CompletionChunk

        Raises:
            LLMException: If the provider returns an error or malformed stream
            NetworkException: If the provider cannot be reached
        """
        pass

    def build_messages(self, messages: List[Dict[str, Any]], system_prompt: Optional[str]) -> List[Dict[str, Any]]:
        if not system_prompt:
            return list(messages)
        return [{"role": "system", "content": system_prompt}] + list(messages)

    def get_provider_name(self) -> str:
        """Get the provider name for this service.

        Returns:
            Provider name string
        """
        return self.config.provider

    def get_model_name(self) -> str:
        """Get the model name for this service.

        Returns:
            Model name string
        """
        return self.config.model

    async def aclose(self) -> None:
        """Release any network resources held by the provider."""
        return None
