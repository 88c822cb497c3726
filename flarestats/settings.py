from __future__ import annotations
import os
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized configuration for FlareStats.
    Loads from .env file or environment variables.
    User-facing settings (token, account, period) live in settings_store.
    """
    model_config = SettingsConfigDict(
        env_file=os.path.join(os.path.dirname(__file__), ".env"),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Cloudflare API
    CF_API_BASE: str = "https://api.cloudflare.com/client/v4"

    # Remote calls
    REQUEST_TIMEOUT_SECONDS: Optional[float] = 30.0
    SERIES_LIMIT: int = 5000

    # Persisted user settings
    DATA_DIR: str = os.path.join(os.path.expanduser("~"), ".flarestats")
    SETTINGS_FILENAME: str = "settings.json"

    # CORS
    ALLOWED_ORIGINS_STR: str = "http://localhost:1420"

    @property
    def CF_GRAPHQL_URL(self) -> str:
        """GraphQL endpoint derived from the API base"""
        return f"{self.CF_API_BASE.rstrip('/')}/graphql"

    @property
    def REQUEST_TIMEOUT(self) -> Optional[float]:
        """Timeout passed to requests; 0 or None disables it"""
        return self.REQUEST_TIMEOUT_SECONDS or None

    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        """Parse comma-separated origins into a list"""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS_STR.split(",") if origin.strip()]

settings = Settings()
