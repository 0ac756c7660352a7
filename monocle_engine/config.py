"""Runtime configuration and logging setup."""

from __future__ import annotations

import logging
import sys
from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from MONOCLE_* environment variables and an optional .env file."""

    model_config = SettingsConfigDict(env_prefix="MONOCLE_", env_file=".env", extra="ignore", populate_by_name=True)

    database_path: Optional[str] = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)

    ai_timeout_seconds: float = Field(default=30.0, gt=0)
    groq_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MONOCLE_GROQ_API_KEY", "GROQ_API_KEY")
    )
    groq_model: str = "llama-3.1-8b-instant"
    gemini_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MONOCLE_GEMINI_API_KEY", "GEMINI_API_KEY")
    )
    gemini_models: list[str] = Field(default_factory=lambda: ["gemini-1.5-flash", "gemini-pro"])
    pollinations_enabled: bool = True
    pollinations_url: str = "https://text.pollinations.ai"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Send plain-text logs to stderr at the given level."""

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(fmt="%(asctime)s %(levelname)s %(name)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S%z")
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
