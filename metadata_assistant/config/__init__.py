"""Configuration management for the Metadata Assistant."""

from .models import (
    ARCHIVE_INSTANCES,
    DEFAULT_INSTANCE,
    LLMConfig,
    ChatConfig,
    ValidatorConfig,
    LookupConfig,
    ArchiveConfig,
    AssistantConfig,
)
from .loader import (
    ConfigLoader,
    ConfigurationError,
    load_config,
    create_example_config
)

__all__ = [
    'ARCHIVE_INSTANCES',
    'DEFAULT_INSTANCE',
    'LLMConfig',
    'ChatConfig',
    'ValidatorConfig',
    'LookupConfig',
    'ArchiveConfig',
    'AssistantConfig',
    'ConfigLoader',
    'ConfigurationError',
    'load_config',
    'create_example_config'
]
