"""Service configuration via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables prefixed with ``PLAYBACK_``."""

    env: str = "development"
    log_level: str = "INFO"

    # Driving loop
    frame_ms: int = 50
    driver_enabled: bool = True

    # Polling endpoints
    events_page_limit: int = 500
    changelog_capacity: int = 1000

    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    model_config = SettingsConfigDict(
        env_prefix="PLAYBACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.env.lower() in ("production", "prod", "staging")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance."""
    return Settings()
