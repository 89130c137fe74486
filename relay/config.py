"""Relay gateway configuration."""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from relay.services.resolver import TierTable

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434/v1"


class RelaySettings(BaseSettings):
    """Relay gateway settings.

    All settings can be configured via environment variables with RELAY_ prefix.
    Example: RELAY_PORT=4000, RELAY_MODEL_SMALL=llama3.2:3b

    The backend, tier and auth settings also accept their unprefixed names
    (OLLAMA_BASE_URL, MODEL_SMALL, API_KEY, ...) so existing deployment
    environments keep working. The RELAY_ name wins when both are set.

    The tier table (small/medium/large) is read once at startup and never
    changes for the lifetime of the process.
    """

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
        protected_namespaces=("settings_",),
    )

    # Server binding
    host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    port: int = Field(default=4000, description="Port to bind the server to")

    # Environment
    environment: str = Field(
        default="development",
        description="Environment (development/production)",
    )

    # Backend
    ollama_base_url: str = Field(
        default=DEFAULT_OLLAMA_BASE_URL,
        validation_alias=AliasChoices("RELAY_OLLAMA_BASE_URL", "OLLAMA_BASE_URL"),
        description="Base URL of the Ollama OpenAI-compatible API",
    )

    # Model tiers
    model_small: str = Field(
        default="qwen2.5:7b",
        validation_alias=AliasChoices("RELAY_MODEL_SMALL", "MODEL_SMALL"),
        description="Model for the 'small' tier",
    )
    model_medium: str = Field(
        default="qwen2.5:32b",
        validation_alias=AliasChoices("RELAY_MODEL_MEDIUM", "MODEL_MEDIUM"),
        description="Model for the 'medium' tier",
    )
    model_large: str = Field(
        default="qwen2.5:72b",
        validation_alias=AliasChoices("RELAY_MODEL_LARGE", "MODEL_LARGE"),
        description="Model for the 'large' tier",
    )

    # Authentication
    api_key: str = Field(
        default="",
        validation_alias=AliasChoices("RELAY_API_KEY", "API_KEY"),
        description="Bearer token required on /v1 routes (empty disables the check)",
    )
    local_bypass: bool = Field(
        default=True,
        validation_alias=AliasChoices("RELAY_LOCAL_BYPASS", "LOCAL_BYPASS"),
        description="Skip the API key check for requests from a loopback address",
    )

    # Timeouts (seconds)
    timeout_chat_seconds: float = Field(
        default=900.0,  # 15 minutes
        gt=0,
        description="Timeout for /v1/chat/completions generation",
    )
    backend_connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for establishing a connection to the backend",
    )

    # Observability
    logfire_enabled: bool = Field(
        default=False,
        description="Enable LogFire instrumentation",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_dir: str = Field(default="logs", description="Directory for rotated log files")

    def tier_table(self) -> TierTable:
        """Build the immutable tier-to-model table from the configured tiers."""
        return TierTable(
            {
                "small": self.model_small,
                "medium": self.model_medium,
                "large": self.model_large,
            }
        )


@lru_cache
def get_settings() -> RelaySettings:
    """Get cached settings instance."""
    return RelaySettings()
