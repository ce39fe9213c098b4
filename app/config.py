"""Application configuration management via pydantic-settings.

Centralize all configuration parameters for the Polyroute service. Load settings
from environment variables and/or a `.env` file. Provide type validation, default
values, and resolution of provider credentials from Docker secrets.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide configuration settings.

    Attributes:
        PROJECT_NAME: Display name for the application.
        VERSION: Semantic version string.
        ENVIRONMENT: Deployment environment identifier.
        LOG_LEVEL: Minimum logging verbosity level.
        LOGGING_NOISY_MODULES: Third-party loggers pinned to WARNING.
        ROUTER_ATTEMPT_TIMEOUT_SECONDS: Upper bound for a single provider attempt.
        QUEUE_MAX_IN_FLIGHT: Maximum number of requests dispatched concurrently.
        PROVIDER_RATE_LIMIT_PER_MINUTE: Dispatches per provider per minute
            before the provider is skipped like an unavailable one. ``None`` disables it.
        METRICS_SINK_QUEUE_SIZE: Capacity of the background attempt sink queue.
        PROVIDER_CATALOG_FILE: Optional JSON file replacing the default catalog.
        OPENAI_API_KEY_FILE: Path to Docker secret containing the OpenAI key.
        OPENAI_API_KEY: Environment variable fallback for the OpenAI key.
        ANTHROPIC_API_KEY_FILE: Path to Docker secret containing the Anthropic key.
        ANTHROPIC_API_KEY: Environment variable fallback for the Anthropic key.
        DEEPSEEK_API_KEY_FILE: Path to Docker secret containing the DeepSeek key.
        DEEPSEEK_API_KEY: Environment variable fallback for the DeepSeek key.
        GROQ_API_KEY_FILE: Path to Docker secret containing the Groq key.
        GROQ_API_KEY: Environment variable fallback for the Groq key.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # ==========================================================================
    # PROJECT METADATA
    # ==========================================================================
    PROJECT_NAME: str = "Polyroute"
    VERSION: str = "0.1.0"

    # ==========================================================================
    # ENVIRONMENT & LOGGING
    # ==========================================================================
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    LOG_LEVEL: Literal["debug", "info", "warning", "error", "critical"] = "info"
    LOGGING_NOISY_MODULES: list[str] = [
        "uvicorn.access",
        "uvicorn.error",
        "httpx",
        "httpcore",
        "asyncio",
    ]

    # ==========================================================================
    # ROUTING
    # ==========================================================================
    ROUTER_ATTEMPT_TIMEOUT_SECONDS: float = 30.0
    QUEUE_MAX_IN_FLIGHT: int = 4
    PROVIDER_RATE_LIMIT_PER_MINUTE: Optional[int] = 100
    METRICS_SINK_QUEUE_SIZE: int = 1000
    PROVIDER_CATALOG_FILE: Optional[str] = None

    # ==========================================================================
    # LLM PROVIDER API KEYS
    # ==========================================================================
    # Key resolution priority: FILE (Docker Secret) > ENV VAR > None
    OPENAI_API_KEY_FILE: Optional[str] = None
    OPENAI_API_KEY: Optional[SecretStr] = None
    ANTHROPIC_API_KEY_FILE: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[SecretStr] = None
    DEEPSEEK_API_KEY_FILE: Optional[str] = None
    DEEPSEEK_API_KEY: Optional[SecretStr] = None
    GROQ_API_KEY_FILE: Optional[str] = None
    GROQ_API_KEY: Optional[SecretStr] = None

    @field_validator(
        "ROUTER_ATTEMPT_TIMEOUT_SECONDS",
        "QUEUE_MAX_IN_FLIGHT",
        "METRICS_SINK_QUEUE_SIZE",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Reject zero or negative routing limits.

        Raises:
            ValueError: If the value is not strictly positive.
        """
        if v <= 0:
            raise ValueError(f"must be greater than zero, got {v}")
        return v

    @field_validator("PROVIDER_RATE_LIMIT_PER_MINUTE")
    @classmethod
    def validate_rate_limit(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError(
                "PROVIDER_RATE_LIMIT_PER_MINUTE must be positive; unset it to disable rate limiting."
            )
        return v

    def _resolve_key(self, vendor: str) -> Optional[str]:
        """Resolve one vendor key, preferring the Docker secret file.

        Raises:
            ValueError: If the ``*_FILE`` variable is set but the file is missing.
        """
        prefix = vendor.upper()
        key_file: Optional[str] = getattr(self, f"{prefix}_API_KEY_FILE")
        key_env: Optional[SecretStr] = getattr(self, f"{prefix}_API_KEY")

        if key_file:
            try:
                with open(key_file, "r") as f:
                    return f.read().strip() or None
            except FileNotFoundError:
                raise ValueError(
                    f"CRITICAL: {vendor} API key file defined at '{key_file}' but not found."
                )
        if key_env:
            return key_env.get_secret_value() or None
        return None

    @computed_field(return_type=dict[str, SecretStr])
    @property
    def api_keys(self) -> dict[str, SecretStr]:
        """Return the resolved provider credentials keyed by vendor.

        Vendors without a configured key are omitted, so the HTTP invoker
        rejects their providers without issuing a network call.

        Returns:
            Mapping of vendor name (``openai``, ``anthropic``, ...) to its key.
        """
        keys: dict[str, SecretStr] = {}
        for vendor in ("openai", "anthropic", "deepseek", "groq"):
            value = self._resolve_key(vendor)
            if value:
                keys[vendor] = SecretStr(value)
        return keys


# ==============================================================================
# DEPENDENCY INJECTION
# ==============================================================================


@lru_cache()
def get_settings() -> Settings:
    """Return a cached singleton instance of the application settings.

    Use as a FastAPI dependency to inject configuration into route handlers.

    Returns:
        The singleton Settings instance.
    """
    return Settings()
