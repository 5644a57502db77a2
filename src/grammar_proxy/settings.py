from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from grammar_proxy.errors import ConfigurationError
from grammar_proxy.models import ProviderName

_KEY_ENV_NAMES: dict[ProviderName, str] = {
    "openrouter": "OPENROUTER_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    provider: ProviderName = Field(default="gemini", validation_alias="PROVIDER")
    openrouter_api_key: SecretStr = Field(default=SecretStr(""), validation_alias="OPENROUTER_API_KEY")
    gemini_api_key: SecretStr = Field(default=SecretStr(""), validation_alias="GEMINI_API_KEY")
    openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
    gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1", validation_alias="OPENROUTER_BASE_URL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta", validation_alias="GEMINI_BASE_URL",
    )
    default_temperature: float = Field(default=0.7, validation_alias="DEFAULT_TEMPERATURE", ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=1000, validation_alias="MAX_OUTPUT_TOKENS", ge=1)
    request_timeout_seconds: float = Field(default=30.0, validation_alias="REQUEST_TIMEOUT_SECONDS", gt=0.0)
    allow_model_override: bool = Field(default=False, validation_alias="ALLOW_MODEL_OVERRIDE")
    system_prompt_name: str = Field(default="grammar_checker", validation_alias="SYSTEM_PROMPT_NAME")
    cors_allow_origin: str = Field(default="*", validation_alias="CORS_ALLOW_ORIGIN")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_destination: Literal["stdout", "file", "both"] = Field(default="stdout", validation_alias="LOG_DESTINATION")
    log_file_path: str = Field(default="logs/grammar_proxy.log", validation_alias="LOG_FILE_PATH")
    log_verbose: bool = Field(default=False, validation_alias="LOG_VERBOSE")
    allow_sensitive_logging: bool = Field(default=False, validation_alias="ALLOW_SENSITIVE_LOGGING")
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True,
    )

    def api_key_for(self, provider: ProviderName | None = None) -> str:
        """Return the API key for ``provider`` or raise when it is not configured."""
        resolved = provider or self.provider
        secret = self.openrouter_api_key if resolved == "openrouter" else self.gemini_api_key
        value = secret.get_secret_value().strip()
        if not value:
            env_name = _KEY_ENV_NAMES[resolved]
            error_message = f"Server configuration error: The API key is missing. Set the {env_name} environment variable."
            raise ConfigurationError(error_message)
        return value

    def model_for(self, provider: ProviderName | None = None) -> str:
        """Return the configured default model for ``provider``."""
        resolved = provider or self.provider
        return self.openrouter_model if resolved == "openrouter" else self.gemini_model

    def base_url_for(self, provider: ProviderName | None = None) -> str:
        """Return the configured API base URL for ``provider`` without a trailing slash."""
        resolved = provider or self.provider
        base_url = self.openrouter_base_url if resolved == "openrouter" else self.gemini_base_url
        return base_url.rstrip("/")


settings = Settings()
