"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bggtop.config.constants import DEFAULT_CONFIG_FILE_NAME, DEFAULT_DB_FILE_NAME


class AppSettings(BaseSettings):
    """Centralized environment configuration.

    These are file locations and client identity, not tuning knobs; tuning
    lives in the YAML config file.
    """

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    db_path: Path = Field(
        default=Path(DEFAULT_DB_FILE_NAME), validation_alias="BGGTOP_DB_PATH"
    )
    config_path: Path = Field(
        default=Path(DEFAULT_CONFIG_FILE_NAME), validation_alias="BGGTOP_CONFIG_PATH"
    )
    user_agent: str | None = Field(default=None, validation_alias="BGGTOP_USER_AGENT")


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
