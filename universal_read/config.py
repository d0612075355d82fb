"""Process configuration loaded from the environment (and an optional ``.env`` file)."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", protected_namespaces=("settings_",))

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash-lite"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=8192, ge=1)

    fetch_timeout: float = Field(default=10.0, gt=0, description="Page fetch timeout in seconds.")
    model_timeout: float = Field(default=60.0, gt=0, description="Gemini call timeout in seconds.")
    max_content_size: int = Field(default=10 * 1024 * 1024, ge=1)

    rate_limit: str = "10/minute"
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
