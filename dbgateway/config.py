"""dbgateway — Configuration via pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./dbgateway.db"
    SQL_ECHO: bool = False  # statements logged via configure_logging()

    # Gateway behaviour
    DELETE_POLICY: Literal["hard", "soft"] = "hard"
    INCLUDE_LOADER: Literal["selectin", "joined"] = "selectin"
    NAVIGATION_MAX_LEVEL: int = 3

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
