"""Configuration loader for the Metadata Assistant."""

import os
import re
import yaml
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple
from pydantic import ValidationError
from dotenv import load_dotenv

from .models import AssistantConfig


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _to_list(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


# (section, key, converter) per environment variable; None section = top level
ENV_MAPPING: Dict[str, Tuple[Optional[str], str, Callable[[str], Any]]] = {
    "LLM_PROVIDER": ("llm_config", "provider", str),
    "LLM_MODEL": ("llm_config", "model", str),
    "LLM_BASE_URL": ("llm_config", "base_url", str),
    "LLM_ENDPOINT": ("llm_config", "endpoint", str),
    "LLM_TIMEOUT": ("llm_config", "timeout", int),
    "LLM_TEMPERATURE": ("llm_config", "temperature", float),
    "MAX_TOOL_ROUNDS": ("chat_config", "max_tool_rounds", int),
    "SYSTEM_PROMPT_FILE": ("chat_config", "system_prompt_file", str),
    "REQUIRED_FIELDS": ("validator_config", "required_fields", _to_list),
    "LOOKUP_TIMEOUT": ("lookup_config", "timeout", int),
    "VERIFY_IDENTIFIERS": ("lookup_config", "verify_identifiers", _to_bool),
    "URL_FETCH_MAX_CHARS": ("lookup_config", "url_fetch_max_chars", int),
    "DANDI_INSTANCE": ("archive_config", "instance", str),
    "DANDI_API_URL": ("archive_config", "api_url", str),
    "DANDI_API_KEY": ("archive_config", "api_key", str),
    "ARCHIVE_TIMEOUT": ("archive_config", "timeout", int),
    "LOG_LEVEL": (None, "log_level", str),
    "LOG_FILE": (None, "log_file", str),
    "JSON_LOGGING": (None, "json_logging", _to_bool),
}

# first match wins
API_KEY_VARIABLES = ("LLM_API_KEY", "OPENROUTER_API_KEY", "OPENAI_API_KEY")


class ConfigLoader:
    """Loads and validates configuration from multiple sources."""

    def __init__(self, config_file: Optional[str] = None, env_file: Optional[str] = None):
        """Initialize the configuration loader.

        Args:
            config_file: Optional path to YAML configuration file
            env_file: Optional path to .env file (defaults to .env in current directory)
        """
        self.config_file = config_file or "config.yaml"
        self.env_file = env_file or ".env"

        self._load_env_file()

    def _load_env_file(self) -> None:
        """Load environment variables from .env file if it exists."""
        env_path = Path(self.env_file)
        if env_path.exists():
            load_dotenv(env_path)
        else:
            config_dir_env = Path(self.config_file).parent / ".env"
            if config_dir_env.exists():
                load_dotenv(config_dir_env)

    def load_config(self) -> AssistantConfig:
        """Load configuration from the YAML file and environment variables.

        Environment variables take precedence over the YAML file.

        Returns:
            AssistantConfig: Validated configuration

        Raises:
            ConfigurationError: If configuration loading or validation fails
        """
        try:
            config_data: Dict[str, Any] = {}

            yaml_config = self._load_yaml_config()
            if yaml_config:
                config_data.update(yaml_config)

            env_config = self._load_env_config()
            config_data = self._merge_configs(config_data, env_config)

            return AssistantConfig(**config_data)

        except ValidationError as e:
            error_details = self._format_validation_errors(e)
            raise ConfigurationError(f"Configuration validation failed:\n{error_details}")
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {str(e)}")

    def _load_yaml_config(self) -> Optional[Dict[str, Any]]:
        """Load configuration from YAML file, substituting ${VAR} references.

        Returns:
            Dict containing YAML configuration or None if file doesn't exist
        """
        config_path = Path(self.config_file)
        if not config_path.exists():
            return None

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = self._substitute_env_vars(f.read())
                data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_file}: {str(e)}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read {self.config_file}: {str(e)}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Top level of {self.config_file} must be a mapping")
        return data

    def _load_env_config(self) -> Dict[str, Any]:
        """Load configuration from environment variables.

        Returns:
            Dict containing environment-based configuration
        """
        config: Dict[str, Any] = {}

        for variable, (section, key, convert) in ENV_MAPPING.items():
            raw = os.getenv(variable)
            if raw is None or raw == "":
                continue
            try:
                value = convert(raw)
            except ValueError:
                raise ConfigurationError(f"Invalid value for {variable}: {raw!r}")
            if section is None:
                config[key] = value
            else:
                config.setdefault(section, {})[key] = value

        for variable in API_KEY_VARIABLES:
            if os.getenv(variable):
                config.setdefault("llm_config", {})["api_key"] = os.getenv(variable)
                break

        return config

    def _merge_configs(self, yaml_config: Dict[str, Any], env_config: Dict[str, Any]) -> Dict[str, Any]:
        """Merge YAML and environment configurations with env taking precedence.

        Args:
            yaml_config: Configuration from YAML file
            env_config: Configuration from environment variables

        Returns:
            Merged configuration dictionary
        """
        merged = yaml_config.copy()

        for key, value in env_config.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value

        return merged

    def _format_validation_errors(self, error: ValidationError) -> str:
        """Format Pydantic validation errors into readable messages."""
        error_messages = []
        for err in error.errors():
            field_path = " -> ".join(str(loc) for loc in err['loc'])
            error_messages.append(f"  {field_path}: {err['msg']}")

        return "\n".join(error_messages)

    def _substitute_env_vars(self, content: str) -> str:
        """Substitute ${VAR} and ${VAR:-default} references in YAML content."""
        pattern = r'\$\{([^}]+)\}'

        def replace_var(match):
            var_expr = match.group(1)
            if ':-' in var_expr:
                var_name, default_value = var_expr.split(':-', 1)
                return os.getenv(var_name.strip(), default_value.strip())
            value = os.getenv(var_expr.strip())
            return value if value is not None else match.group(0)

        return re.sub(pattern, replace_var, content)


def load_config(config_file: Optional[str] = None, env_file: Optional[str] = None) -> AssistantConfig:
    """Convenience function to load configuration.

    Raises:
        ConfigurationError: If configuration loading or validation fails
    """
    loader = ConfigLoader(config_file, env_file)
    return loader.load_config()


def create_example_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Create an example configuration, optionally writing it as YAML.

    Args:
        path: Optional destination file

    Returns:
        Dictionary containing example configuration
    """
    example = {
        "llm_config": {
            "provider": "openai",
            "api_key": "${OPENROUTER_API_KEY}",
            "base_url": "https://openrouter.ai/api/v1",
            "model": "openai/gpt-4.1-mini",
            "timeout": 60,
            "temperature": 0.2,
        },
        "chat_config": {
            "max_tool_rounds": 5,
        },
        "lookup_config": {
            "timeout": 15,
            "verify_identifiers": True,
        },
        "archive_config": {
            "instance": "DANDI Sandbox",
            "api_key": "${DANDI_API_KEY:-}",
        },
        "log_level": "INFO",
    }

    if path:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(example, f, sort_keys=False)

    return example
