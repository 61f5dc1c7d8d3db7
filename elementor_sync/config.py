from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)

DEFAULT_AI_EDIT_SERVICE_URL = "https://elementor-ui-edit-server.onrender.com/edits"
MIN_AI_EDIT_SERVICE_TIMEOUT_SECONDS = 5.0


class Settings(BaseSettings):
    ELEMENTOR_SYNC_DB_URL: str = "sqlite:///./elementor_sync.db"

    AI_EDIT_SERVICE_URL: str = DEFAULT_AI_EDIT_SERVICE_URL
    AI_EDIT_SERVICE_TIMEOUT_SECONDS: float = 30.0
    AI_EDIT_SERVICE_TOKEN: str | None = None

    CACHE_INVALIDATION_WEBHOOK_URL: str | None = None
    CACHE_INVALIDATION_TIMEOUT_SECONDS: float = 5.0

    SIDELOAD_IMAGES: bool = False
    MEDIA_ROOT: str = "./media"
    MEDIA_BASE_URL: str = "/media"
    SIDELOAD_TIMEOUT_SECONDS: float = 15.0

    DICTIONARY_MAX_TEXT_LEN: int = 0
    LOG_LEVEL: str = "INFO"

    @field_validator("AI_EDIT_SERVICE_TIMEOUT_SECONDS")
    @classmethod
    def clamp_edit_service_timeout(cls, value: float) -> float:
        return max(MIN_AI_EDIT_SERVICE_TIMEOUT_SECONDS, value)

    @field_validator("AI_EDIT_SERVICE_URL")
    @classmethod
    def default_blank_edit_service_url(cls, value: str) -> str:
        cleaned = value.strip()
        return cleaned or DEFAULT_AI_EDIT_SERVICE_URL

    @field_validator("DICTIONARY_MAX_TEXT_LEN")
    @classmethod
    def validate_max_text_len(cls, value: int) -> int:
        if value < 0:
            raise ValueError("DICTIONARY_MAX_TEXT_LEN must be >= 0")
        return value

    @property
    def media_base_url(self) -> str:
        return self.MEDIA_BASE_URL.rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
