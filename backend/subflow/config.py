"""Application configuration."""

from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Subflow"
    debug: bool = False

    # Database (translation memory store)
    database_url: str = "sqlite+aiosqlite:///./subflow.db"

    # Translation memory
    memory_store_backend: Literal["database", "json", "memory"] = "database"
    memory_store_dir: Path = Path(__file__).parent.parent.parent / "data" / "translation-memory"
    store_write_retries: int = 3

    # Translation settings
    default_batch_count: int = 1  # 1 = no splitting
    default_batch_concurrency: int = 2
    translation_temperature: float = 0.3
    translation_max_tokens: int = 16384

    # LLM API Keys (loaded from environment)
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    deepseek_api_key: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_api_key(self, provider: str) -> Optional[str]:
        """Resolve the configured API key for a provider.

        Args:
            provider: Provider name (openai, anthropic, google/gemini, ...)

        Returns:
            API key or None when nothing is configured
        """
        provider = (provider or "").lower()
        if provider == "google":
            provider = "gemini"
        return getattr(self, f"{provider}_api_key", None)


settings = Settings()
