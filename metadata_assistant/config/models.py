"""Configuration models for the Metadata Assistant."""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


ARCHIVE_INSTANCES: Dict[str, Dict[str, str]] = {
    "DANDI Production": {
        "api_url": "https://api.dandiarchive.org/api",
        "web_url": "https://dandiarchive.org",
    },
    "DANDI Sandbox": {
        "api_url": "https://api.sandbox.dandiarchive.org/api",
        "web_url": "https://sandbox.dandiarchive.org",
    },
    "EMBER": {
        "api_url": "https://api-dandi.emberarchive.org/api",
        "web_url": "https://dandi.emberarchive.org",
    },
}

DEFAULT_INSTANCE = "DANDI Production"


class LLMConfig(BaseModel):
    """Configuration for the completion provider."""

    provider: str = Field("openai", description="Completion provider: 'openai' or 'custom'")
    api_key: Optional[str] = Field(None, description="API key for the completion service")
    base_url: Optional[str] = Field(
        "https://openrouter.ai/api/v1",
        description="Base URL of an OpenAI-compatible API (OpenRouter by default)"
    )
    endpoint: Optional[str] = Field(None, description="Full chat completions URL for the custom provider")
    model: str = Field("openai/gpt-4.1-mini", description="Model name to use")
    timeout: int = Field(60, description="Request timeout in seconds", ge=1, le=600)
    temperature: float = Field(0.2, description="Sampling temperature", ge=0.0, le=2.0)
    custom_headers: Optional[Dict[str, str]] = Field(None, description="Extra headers sent with every request")

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v):
        """Validate that provider is one of the supported options."""
        allowed_providers = {'openai', 'custom'}
        v = v.lower()
        if v not in allowed_providers:
            raise ValueError(f"Provider must be one of: {', '.join(sorted(allowed_providers))}")
        return v

    @model_validator(mode='after')
    def validate_provider_requirements(self):
        """Validate provider-specific requirements."""
        if self.provider == 'custom' and not self.endpoint:
            raise ValueError("Endpoint is required when using custom provider")
        return self


class ChatConfig(BaseModel):
    """Configuration for the chat orchestration loop."""

    max_tool_rounds: int = Field(
        5,
        description="Maximum consecutive tool-call round-trips per user turn",
        ge=1,
        le=20
    )
    assistant_name: str = Field("Dandiset Metadata Assistant", description="Name used in the system prompt")
    system_prompt_file: Optional[str] = Field(None, description="Optional file overriding the system prompt header")


class ValidatorConfig(BaseModel):
    """Field lists checked by the structural validator."""

    required_fields: List[str] = Field(
        default_factory=lambda: [
            "id", "name", "description", "contributor", "license", "schemaVersion", "identifier",
        ],
        description="Top-level fields that must be present and non-null"
    )
    string_fields: List[str] = Field(
        default_factory=lambda: ["name", "description"],
        description="Fields that must be non-empty strings"
    )
    non_empty_list_fields: List[str] = Field(
        default_factory=lambda: ["contributor"],
        description="Fields that must be non-empty arrays"
    )
    list_fields: List[str] = Field(
        default_factory=lambda: ["license"],
        description="Fields that must be arrays"
    )


class LookupConfig(BaseModel):
    """Configuration for identifier verification, ontology lookup and URL fetching."""

    timeout: int = Field(15, description="HTTP timeout in seconds", ge=1, le=120)
    verify_identifiers: bool = Field(True, description="Resolve ORCID/ROR/URL values before admitting a change")
    url_fetch_max_chars: int = Field(20000, description="Maximum characters returned by fetch_url", ge=100, le=500000)
    skip_validation_domains: List[str] = Field(
        default_factory=lambda: ["doi.org", "dx.doi.org", "dandiarchive.org"],
        description="Hosts whose URLs are assumed to resolve"
    )
    user_agent: str = Field("metadata-assistant/1.0", description="User-Agent for outbound lookups")


class ArchiveConfig(BaseModel):
    """Configuration for the remote archive API."""

    instance: str = Field(DEFAULT_INSTANCE, description="Named archive instance")
    api_url: Optional[str] = Field(None, description="Explicit API URL, overrides the instance")
    api_key: Optional[str] = Field(None, description="Archive API token used for commits")
    timeout: int = Field(30, description="Request timeout in seconds", ge=1, le=300)

    @field_validator('instance')
    @classmethod
    def validate_instance(cls, v):
        """Validate that the instance is a known archive."""
        if v not in ARCHIVE_INSTANCES:
            raise ValueError(f"Instance must be one of: {', '.join(ARCHIVE_INSTANCES)}")
        return v

    @property
    def resolved_api_url(self) -> str:
        return (self.api_url or ARCHIVE_INSTANCES[self.instance]["api_url"]).rstrip("/")


class AssistantConfig(BaseModel):
    """Main configuration container for the Metadata Assistant."""

    llm_config: LLMConfig = Field(default_factory=LLMConfig, description="Completion provider configuration")
    chat_config: ChatConfig = Field(default_factory=ChatConfig, description="Chat loop configuration")
    validator_config: ValidatorConfig = Field(default_factory=ValidatorConfig, description="Validator configuration")
    lookup_config: LookupConfig = Field(default_factory=LookupConfig, description="Lookup configuration")
    archive_config: ArchiveConfig = Field(default_factory=ArchiveConfig, description="Archive configuration")
    log_level: str = Field("INFO", description="Logging level")
    log_file: Optional[str] = Field(None, description="Optional rotating log file")
    json_logging: bool = Field(False, description="Emit JSON log lines")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate that log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v.upper()

    model_config = {
        "validate_assignment": True,
        "extra": "forbid",
    }
