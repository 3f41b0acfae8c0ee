from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Gemini transport (seconds / bytes)
    connect_timeout: float = 30.0
    abort_timeout: float = 30.0
    max_response_size: int = 5 * 1024 * 1024

    # Probe service
    max_redirects: int = 5

    # Logging
    log_level: str = "INFO"


settings = Settings()
