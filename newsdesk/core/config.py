from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    news_api_key: str = Field(default="", alias="NEWS_API_KEY")
    news_api_base_url: str = Field(default="https://newsapi.org/v2", alias="NEWS_API_BASE_URL")
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")

    # Comma separated, e.g. "artificial intelligence,robotics"
    categories: str = Field(default="artificial intelligence", alias="CATEGORIES")

    storage_backend: str = Field(default="local", alias="STORAGE_BACKEND")
    data_dir: str = Field(default="data", alias="DATA_DIR")
    database_url: str = Field(default="sqlite+aiosqlite:///data/newsdesk.db", alias="DATABASE_URL")
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_key: str = Field(default="", alias="SUPABASE_KEY")
    audio_bucket: str = Field(default="audio", alias="AUDIO_BUCKET")

    collect_interval_minutes: int = Field(default=15, alias="COLLECT_INTERVAL_MINUTES")
    retention_hours: int = Field(default=24, alias="RETENTION_HOURS")
    search_page_size: int = Field(default=10, alias="SEARCH_PAGE_SIZE")
    enrich_concurrency: int = Field(default=3, alias="ENRICH_CONCURRENCY")
    request_timeout_seconds: int = Field(default=10, alias="REQUEST_TIMEOUT_SECONDS")
    generation_timeout_seconds: int = Field(default=60, alias="GENERATION_TIMEOUT_SECONDS")
    request_cache_ttl_seconds: int = Field(default=60, alias="REQUEST_CACHE_TTL_SECONDS")
    request_cache_max_entries: int = Field(default=1024, alias="REQUEST_CACHE_MAX_ENTRIES")
    audio_max_age_days: int = Field(default=7, alias="AUDIO_MAX_AGE_DAYS")

    summary_model: str = Field(default="gpt-4o-mini", alias="SUMMARY_MODEL")
    tts_model: str = Field(default="tts-1", alias="TTS_MODEL")
    tts_voice: str = Field(default="nova", alias="TTS_VOICE")
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; NewsdeskBot/1.0)",
        alias="USER_AGENT",
    )

    # Empty api_key leaves the public routes open
    api_key: str = Field(default="", alias="API_KEY")
    admin_token: str = Field(default="", alias="ADMIN_TOKEN")

    # Ingestion assumes exactly one active process; there is no cross-process locking.
    single_process: bool = Field(default=True, alias="SINGLE_PROCESS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    default_page_size: int = Field(default=6, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=20, alias="MAX_PAGE_SIZE")

    @property
    def category_list(self) -> list[str]:
        seen: list[str] = []
        for raw in self.categories.split(","):
            c = raw.strip().lower()
            if c and c not in seen:
                seen.append(c)
        return seen


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
