"""
Configuration and settings for the tracker service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_SUPABASE_URL = "https://your-project.supabase.co"
PLACEHOLDER_SUPABASE_KEY = "your-anon-key"


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Hosted backend (SUPABASE_URL / SUPABASE_ANON_KEY)
    supabase_url: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    page_size: int = Field(default=1000, ge=1)
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    # Direct SQL access to the same tables (DATABASE_URL)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Redis (vote markers + cross-process change notifications)
    redis_url: Optional[str] = Field(default=None)
    redis_marker_key: str = Field(default="iftar:votes")
    redis_change_channel: str = Field(default="iftar:changes")

    change_poll_interval_seconds: float = Field(default=15.0, gt=0)
    client_cookie_name: str = Field(default="iftar_client_id")

    @property
    def backend_configured(self) -> bool:
        """True when both hosted backend values are set to real values."""
        if not self.supabase_url or not self.supabase_anon_key:
            return False
        return (
            self.supabase_url != PLACEHOLDER_SUPABASE_URL
            and self.supabase_anon_key != PLACEHOLDER_SUPABASE_KEY
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
