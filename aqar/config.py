"""
Application configuration using pydantic-settings.

Values come from the environment or a local .env file. No API key is
required: features that need a missing key report themselves unavailable.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DATA_DIR = Path(__file__).resolve().parent / "data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application settings
    debug: bool = False
    app_name: str = "Aqar Search API"
    app_version: str = "0.1.0"

    # Search settings
    default_locale: str = "ar"
    data_dir: Path = PACKAGE_DATA_DIR
    default_limit: int = Field(default=10, gt=0)
    max_limit: int = Field(default=50, gt=0)

    # Result cache
    cache_max_size: int = Field(default=256, gt=0)
    cache_ttl_seconds: float = Field(default=300.0, gt=0)

    # Embedding provider (OpenAI-compatible /embeddings endpoint)
    embedding_api_key: Optional[str] = None
    embedding_base_url: str = "https://api.openai.com/v1"
    embedding_model: str = "text-embedding-ada-002"
    embedding_timeout: float = 30.0
    embedding_max_retries: int = Field(default=2, ge=0)

    # Claude configuration (voice/LLM criteria assistant)
    anthropic_api_key: Optional[str] = None
    claude_model: str = "claude-sonnet-4-20250514"
    claude_max_tokens: int = 1024


@lru_cache
def get_settings() -> Settings:
    """Settings are read once per process; tests call `get_settings.cache_clear()`."""
    return Settings()
