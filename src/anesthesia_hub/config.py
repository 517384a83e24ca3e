"""Application configuration."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    anthropic_api_key: str = ""
    ncbi_api_key: str = ""

    # LLM Settings
    llm_model: str = "claude-sonnet-4-6"
    small_llm_model: str = "claude-haiku-4-5-20251001"

    # Timeouts (seconds, per external call)
    source_timeout_seconds: float = 15.0
    llm_timeout_seconds: float = 60.0

    # Cache tiers (seconds)
    raw_cache_ttl_seconds: int = 3600
    research_cache_ttl_seconds: int = 86400
    guideline_cache_ttl_seconds: int = 7 * 86400

    # App Settings
    log_level: str = "INFO"
    run_live_tests: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        frozen = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
