"""
Configuration management for Greg recurrence expansion.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Renders "Feb 3, 2020"
DEFAULT_HUMAN_READABLE_FORMAT = "{0:%b} {0.day}, {0.year}"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # Recurrence expansion
    human_readable_format: str = Field(
        default=DEFAULT_HUMAN_READABLE_FORMAT,
        description=(
            "str.format template applied to dates in generated recurrence "
            "descriptions, e.g. '{0.month}/{0.day}/{0:%y}'"
        )
    )
    filter_non_recurring: bool = Field(
        default=False,
        description=(
            "Apply earliest/latest constraints to non-recurring events too "
            "(by default they are assumed to be pre-filtered by the query)"
        )
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.python_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.
    Use this function throughout the application to access settings.

    Returns:
        Settings instance loaded from environment

    Example:
        >>> from src.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.human_readable_format)
    """
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Apply the configured log level to the package loggers.

    Handlers are left to the host application.
    """
    settings = settings or get_settings()
    logging.getLogger("src").setLevel(settings.log_level)
