"""Application settings via environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings

from agentic_assistant.core.types import AutonomyLevel


class Settings(BaseSettings):
    """Application settings via environment variables."""

    # Anthropic Messages API
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_version: str = "2023-06-01"
    default_model: str = "claude-sonnet-4-5"
    max_tokens: int = 4096

    # HTTP transport
    http_timeout_seconds: float = 60.0
    http_max_retries: int = 3
    http_retry_backoff_seconds: float = 1.0  # doubled on every retry

    # Orchestrator loop
    max_rounds: int = 25
    turn_timeout_seconds: float = 300.0
    system_prompt: str | None = None

    # Policy (0 = ask all, 1 = smart default, 2 = full auto)
    autonomy_level: AutonomyLevel = AutonomyLevel.SMART_DEFAULT

    # Session trace directory; disabled when unset
    session_log_dir: str | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
