"""
Configuration management for the study backend.

Uses Pydantic Settings for environment variable management and validation.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # API Keys
    google_api_key: str = ""

    # Application
    environment: Literal["development", "staging", "production"] = "development"
    backend_port: int = 8000

    # CORS
    cors_origins: list[str] = ["*"]

    # LLM Model Names: explain mode gets the higher-capability model
    explain_model: str = "gemini-3-pro-preview"
    text_model: str = "gemini-3-flash-preview"
    thinking_budget: int = 8000

    # Unset means a hung generation call keeps the session busy
    generation_timeout_s: Optional[float] = None

    # Session
    history_capacity: int = 15

    # Logging
    log_level: str = "INFO"


# Global settings instance
settings = Settings()
