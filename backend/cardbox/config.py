"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Collaborator settings only; the lifecycle core reads nothing from the environment

Design Decisions:
    - Defaults provided for all non-secret settings: works out-of-the-box for local dev
    - owner_directory accepts JSON from the environment (OWNER_DIRECTORY='{"123": "a@b.edu"}')
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Anthropic (card OCR)
    anthropic_api_key: str = "sk-ant-placeholder"
    anthropic_max_retries: int = 2
    anthropic_timeout_seconds: int = 30
    anthropic_base_delay_ms: int = 500
    anthropic_max_delay_ms: int = 8_000
    ocr_model: str = "claude-sonnet-4-5"
    ocr_max_tokens: int = 256
    ocr_timeout_seconds: float = 45.0
    max_image_bytes: int = 10 * 1024 * 1024

    # Email (SendGrid)
    sendgrid_api_key: str | None = None
    sendgrid_from_email: str = "noreply@lostid.example.edu"
    sendgrid_api_url: str = "https://api.sendgrid.com/v3/mail/send"
    notify_timeout_seconds: float = 15.0
    greeting_name: str = "Student"
    status_page_url: str | None = "http://localhost:5173/status"

    # Identity resolution
    owner_directory: dict[str, str] = {}

    # Boxes
    open_request_ttl_seconds: int = 120

    # Staff gate (unset = open, development only)
    staff_token: str | None = None

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("sendgrid_api_key", "staff_token", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Empty env vars mean "not configured"."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
