"""lp0chat configuration via environment / .env file."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Endpoints ---
    AUTH_URL: str = "http://localhost:4322/jwt/user"
    NATS_URL: str = "ws://localhost:5222"

    # --- Timeouts ---
    CONNECT_TIMEOUT_MS: int = 60000
    AUTH_TIMEOUT: float = 20.0

    # --- Local identity storage ---
    STORAGE_PATH: str = "~/.lp0chat/storage.json"

    # --- Session ---
    USER_TIMEZONE: str = ""
    DECODE_ERROR_POLICY: Literal["fail", "skip"] = "fail"
    LINE_BREAK: str = "<br />"

    @field_validator("CONNECT_TIMEOUT_MS")
    @classmethod
    def _positive_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("CONNECT_TIMEOUT_MS must be positive")
        return v

    @field_validator("STORAGE_PATH")
    @classmethod
    def _expand_home(cls, v: str) -> str:
        return str(Path(v).expanduser())


settings = Settings()
