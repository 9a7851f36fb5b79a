"""Configuration management for the smartpen bridge."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "penbridge"
    postgres_password: str = "localdev"
    postgres_db: str = "penbridge"
    database_url_override: Optional[str] = None

    # Reconciliation
    match_tolerance: float = 5.0
    stroke_overlap_threshold: float = 0.5
    editor_history_depth: int = 50

    # Logging
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        """Construct async database URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
