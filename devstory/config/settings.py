from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized configuration for the DevStory API.
    Loads environment variables (and an optional .env file) with sensible defaults.
    """
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    HOST: str = "0.0.0.0"
    PORT: int = 4000
    ENVIRONMENT: str = Field("production", validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"))
    LOG_LEVEL: Optional[str] = None
    CORS_ORIGIN: Optional[str] = None

    GITHUB_TOKEN: Optional[str] = None
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TIMEOUT_SECONDS: float = 30.0
    DETAIL_CONCURRENCY: int = 6

    CACHE_TTL_SECONDS: float = 5 * 60
    CACHE_SWEEP_INTERVAL_SECONDS: float = 10 * 60

    API_RATE_LIMIT: int = 100
    API_RATE_WINDOW_SECONDS: float = 15 * 60
    ANALYZE_RATE_LIMIT: int = 10
    ANALYZE_RATE_WINDOW_SECONDS: float = 60 * 60
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = 60

    # None means the server's local time zone (see DESIGN.md)
    STATS_TIMEZONE: Optional[str] = None

    MAX_CONTENT_FETCH_BYTES: int = 1024 * 1024
    MAX_CONTENT_DISPLAY_BYTES: int = 500 * 1024

    APP_NAME: str = "DevStory API"
    APP_VERSION: str = "1.0.0"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def cors_origins(self) -> list[str]:
        if not self.CORS_ORIGIN:
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]


settings = Settings()
