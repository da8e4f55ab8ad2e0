"""Configuration management."""

from pathlib import Path
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Database (PostgreSQL) - constructed from parts
    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: str = "kleinewelt"
    db_user: str = "kleinewelt"
    db_password: str = ""

    # "memory" keeps everything in process (local dev and tests)
    database_backend: Literal["postgres", "memory"] = "postgres"

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from parts."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Uploaded message attachments
    upload_dir: Path = Path("uploads")
    upload_max_bytes: int = 25 * 1024 * 1024
    message_image_retention_days: int = 3

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Client synchronization layer
    api_base_url: str = "http://localhost:8000"
    client_timeout: float = 30.0
    mobile_breakpoint: int = 768
    care_group_cache_dir: Path = Path(".kleinewelt-cache")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


# Global settings instance
settings = Settings()
