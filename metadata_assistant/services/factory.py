"""Factory for creating completion provider instances."""

from typing import Dict, Type

from .interface import CompletionProvider
from .openai_adapter import OpenAICompletionProvider
from .custom_adapter import CustomCompletionProvider
from ..config.models import LLMConfig


def create_completion_provider(config: LLMConfig) -> CompletionProvider:
    """Create a completion provider based on the provider configuration.

    Args:
        config: LLM configuration containing provider and settings

    Returns:
        Completion provider for the configured backend

    Raises:
        ValueError: If provider is not supported or misconfigured
    """
    provider_map: Dict[str, Type[CompletionProvider]] = {
        "openai": OpenAICompletionProvider,
        "custom": CustomCompletionProvider,
    }

    provider = config.provider.lower()

    if provider not in provider_map:
        supported_providers = ", ".join(provider_map.keys())
        raise ValueError(
            f"Unsupported LLM provider: {provider}. "
            f"Supported providers: {supported_providers}"
        )

    provider_class = provider_map[provider]
    return provider_class(config)
