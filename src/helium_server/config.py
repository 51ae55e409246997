"""Configuration module for helium-server using pydantic-settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from helium_server.inference.types import ModelParameters, ModelProvider


class HeliumServerSettings(BaseSettings):
    """Main configuration settings for helium-server.

    All settings can be overridden via environment variables with the HELIUM_ prefix.
    For example, HELIUM_OLLAMA_HOST will override the ollama_host setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Providers
    default_provider: ModelProvider = ModelProvider.OLLAMA
    ollama_host: str = "http://localhost:11434"
    openai_compatible_endpoint: str | None = None
    openai_api_key: str | None = None

    # Default models per provider
    default_ollama_model: str = "llama3.2:3b"
    default_openai_model: str = "local-model"
    default_transformers_model: str = "HuggingFaceTB/SmolLM2-360M-Instruct"

    # Default generation parameters
    temperature: float = 0.7
    top_p: float = 0.9
    max_tokens: int = 2048

    # Tool calling
    max_tool_iterations: int = Field(default=5, ge=1)
    tool_timeout_seconds: float | None = None
    context_max_chars: int = Field(default=4000, ge=1)

    # File-system tools
    allowed_directories: list[str] = Field(default_factory=lambda: ["."])
    max_file_size: int = 10 * 1024 * 1024

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"
    debug_logging: bool = False

    model_config = SettingsConfigDict(env_prefix="HELIUM_")

    @property
    def effective_log_level(self) -> str:
        """Get the log level, forced to DEBUG when debug logging is on."""
        return "DEBUG" if self.debug_logging else self.log_level.upper()

    @property
    def default_parameters(self) -> ModelParameters:
        return ModelParameters(
            temperature=self.temperature,
            top_p=self.top_p,
            max_tokens=self.max_tokens,
        )

    def default_model_for(self, provider: ModelProvider) -> str:
        """Get the configured default model id for a provider."""
        if provider == ModelProvider.OLLAMA:
            return self.default_ollama_model
        elif provider == ModelProvider.OPENAI_COMPATIBLE:
            return self.default_openai_model
        elif provider == ModelProvider.TRANSFORMERS:
            return self.default_transformers_model
        raise ValueError(f"Unknown provider: {provider}")

    def endpoint_for(self, provider: ModelProvider) -> str | None:
        """Get the configured endpoint for a provider, if it has one."""
        if provider == ModelProvider.OLLAMA:
            return self.ollama_host
        elif provider == ModelProvider.OPENAI_COMPATIBLE:
            return self.openai_compatible_endpoint
        elif provider == ModelProvider.TRANSFORMERS:
            return None
        raise ValueError(f"Unknown provider: {provider}")
