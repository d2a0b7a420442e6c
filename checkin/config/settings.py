"""
Application settings and configuration management.

Uses pydantic-settings for environment variable loading.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Daily Check-in"
    app_version: str = "0.1.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # Remote collaborators (context source, responder, STT, TTS)
    api_base_url: str = "http://localhost:3000"
    api_token: str = ""
    context_path: str = "/api/interview/context"
    responder_path: str = "/api/interview"
    transcribe_path: str = "/api/transcribe"
    tts_path: str = "/api/tts"

    # Interview settings
    history_limit: int = 10
    start_sentinel: str = "__START_INTERVIEW__"
    initial_stage: str = "mood"

    # Voice settings
    transcription_timeout_seconds: float = 30.0
    tts_max_chars: int = 4096
    tts_voice: str = "nova"
    preferences_path: Path = Path.home() / ".checkin" / "preferences.json"

    # CORS - stored as comma-separated string in env
    cors_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        validation_alias="cors_origins"
    )

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def auth_headers(self) -> dict[str, str]:
        """Bearer auth header for collaborator calls, if a token is set."""
        if not self.api_token:
            return {}
        return {"Authorization": f"Bearer {self.api_token}"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
