from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "releasegate"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./releasegate.db"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    file_logging: bool = False

    # Workflow policy (scheduler roles, recurrence horizon, ...)
    policy_file: Optional[str] = None

    # Seed data for ``python -m releasegate seed``
    seed_file: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="RELEASEGATE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
