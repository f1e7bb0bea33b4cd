from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    database_url: str = "sqlite+aiosqlite:///data/musclekitty.db"
    cache_file: str = "data/local_cache.json"

    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str = ""
    identity_timeout_seconds: float = 10.0

    redirect_delay_seconds: float = 1.0
    onboarding_scope: Literal["device", "account"] = "device"

    user_storage_key: str = "muscle_kitty_user_data"
    onboarding_key: str = "muscle_kitty_onboarding_completed"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
