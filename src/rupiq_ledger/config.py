"""Configuration management for RupIQ Ledger."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Ledger owner
    owner_name: str = "Me"  # Display name of the ledger owner participant
    currency_symbol: str = "₹"

    # OpenAI API (optional, suggestions fall back to static advice without it)
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    # Database path
    database_path: Path = Path.home() / ".rupiq" / "rupiq.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and environment "
            f"variables. See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
