"""Application configuration loaded from environment variables."""

import logging
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ── Database ─────────────────────────────────────────────────────────────
    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "learning_platform"

    # ── Auth ─────────────────────────────────────────────────────────────────
    SECRET_KEY: str = "dev-secret-key-change-in-prod"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # ── Server ───────────────────────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    # Comma-separated list of allowed origins, "*" for any.
    ALLOWED_ORIGINS: str = "*"

    LOG_LEVEL: str = "INFO"


settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
