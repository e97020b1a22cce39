"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "dev-change-this-secret"


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 3600

    store_backend: Literal["memory", "postgres"] = "memory"
    database_url: str | None = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5
    db_command_timeout_s: float = 30.0

    cors_allow_origin: str = "*"
    log_level: str = "INFO"
    default_reset_password: str = "123456"

    model_config = SettingsConfigDict(env_prefix="LIFELOG_", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
