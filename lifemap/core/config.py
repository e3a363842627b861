"""Configuration management for the lifemap engine."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Environment
    LIFEMAP_ENV: str = Field(default="dev", description="Environment: dev, staging, prod, test")

    # Generation oracle
    LLM_PROVIDER: Literal["gemini", "anthropic"] = Field(
        default="gemini", description="Which generation oracle backs the flows"
    )
    GEMINI_API_KEY: str | None = Field(default=None, description="Google Gemini API key")
    GEMINI_MODEL: str = Field(default="gemini-2.0-flash-exp", description="Gemini model name")
    GEMINI_BASE_URL: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST base URL",
    )
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    ANTHROPIC_MODEL: str = Field(
        default="claude-haiku-4-5-20251001", description="Anthropic model name"
    )
    LLM_TIMEOUT_SECONDS: float = Field(default=60.0, description="HTTP client timeout for oracle calls")

    # Identity check
    AUTH_TIMEOUT_SECONDS: float = Field(default=3.0, description="Hard timeout around token validation")

    # Adaptation windows
    TIMELINE_WINDOW_BEFORE: int = Field(default=3, description="Years before an edited event")
    TIMELINE_WINDOW_AFTER: int = Field(default=5, description="Years after an edited event")
    STEPS_WINDOW_BEFORE: int = Field(default=2, description="Positions before an edited step")
    STEPS_WINDOW_AFTER: int = Field(default=3, description="Positions after an edited step")

    # Prompt context
    PAST_HISTORY_YEARS: int = Field(default=7, description="Years of shared past history sent as context")
    LANGUAGE_DETECTION_ENABLED: bool = Field(
        default=True, description="Run a language classification call before generation"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
