"""Configuration management for the AI writing core."""

import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import httpx
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .llm.client import CancellationToken, StreamingChatClient
from .llm.exceptions import ProviderError
from .llm.models import DEFAULT_STREAM_TIMEOUT, ChatMessage, StreamRequestConfig
from .llm.slug import DEFAULT_SLUG_TIMEOUT
from .llm.streaming.parser import split_batched_payload
from .logging_utils import configure_logging

DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.yaml")


class ProviderSettings(BaseModel):
    """Resolved settings for one OpenAI-compatible provider."""
    name: str
    endpoint: str
    model: str | None = None
    api_key_env: str | None = None
    timeout: float = Field(default=DEFAULT_STREAM_TIMEOUT, gt=0)
    slug_timeout: float = Field(default=DEFAULT_SLUG_TIMEOUT, gt=0)


class Configuration:
    """Manages configuration and environment variables."""

    def __init__(self, config_path: str | os.PathLike[str] | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._config = self._load_yaml_config()

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self.config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    @property
    def active_provider(self) -> str:
        return self._config.get("llm", {}).get("active", "openai")

    def get_llm_config(self) -> ProviderSettings:
        """Get active LLM provider configuration from YAML.

        Returns:
            Validated settings of the active provider.

        Raises:
            ProviderError: If the active provider is missing or invalid.
        """
        providers = self._config.get("llm", {}).get("providers", {})
        active = self.active_provider

        if active not in providers:
            raise ProviderError(
                f"Active provider '{active}' not found in providers config",
                provider=active,
            )

        try:
            return ProviderSettings(name=active, **providers[active])
        except ValidationError as e:
            raise ProviderError(
                f"Invalid configuration for provider '{active}': {e}",
                provider=active,
            ) from e

    @property
    def llm_api_key(self) -> str | None:
        """Get the API key for the active LLM provider.

        Returns:
            The API key, or None when the provider needs none or the
            environment variable is unset.
        """
        env_key = self.get_llm_config().api_key_env
        if not env_key:
            return None
        return os.getenv(env_key) or None

    def split_batched_payloads(self) -> bool:
        """Whether backslash-space batched data fields are split."""
        value = self._config.get("streaming", {}).get("split_batched_payloads", True)
        if not isinstance(value, bool):
            raise ValueError("streaming.split_batched_payloads must be a boolean")
        return value

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        return self._config.get("logging", {})

    def apply_logging_config(self) -> None:
        """Reconfigure logging from the ``logging`` section."""
        logging_config = self.get_logging_config()
        configure_logging(
            logging_config.get("level", "INFO"),
            colors=logging_config.get("colors", True),
        )

    def build_stream_request(
        self,
        messages: Sequence[ChatMessage],
        cancellation_token: CancellationToken | None = None,
    ) -> StreamRequestConfig:
        """Resolve endpoint, key and model of the active provider into a request."""
        settings = self.get_llm_config()
        return StreamRequestConfig(
            endpoint=settings.endpoint,
            messages=tuple(messages),
            api_key=self.llm_api_key,
            model=settings.model,
            timeout=settings.timeout,
            cancellation_token=cancellation_token,
        )

    def slug_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``generate_seo_slug`` from the active provider."""
        settings = self.get_llm_config()
        return {
            "endpoint": settings.endpoint,
            "api_key": self.llm_api_key,
            "model": settings.model,
            "timeout": settings.slug_timeout,
        }

    def create_chat_client(
        self, http_client: httpx.AsyncClient | None = None
    ) -> StreamingChatClient:
        """Streaming client honouring the ``streaming`` section."""
        splitter = split_batched_payload if self.split_batched_payloads() else None
        return StreamingChatClient(http_client, data_splitter=splitter)
