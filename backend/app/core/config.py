"""Application configuration and settings management."""
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings loaded from environment variables or .env."""

    model_config = SettingsConfigDict(
        env_file=(Path(__file__).resolve().parent.parent / ".." / ".env"),
        env_file_encoding="utf-8",
        env_prefix="TRACKER_",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = "Project Tracker"
    secret_key: str = "change-me"
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:5173"

    # Database
    database_url: str = "sqlite+aiosqlite:///./tracker.db"

    # Sessions
    session_cookie_name: str = "tracker_session"
    session_cookie_secure: bool = True
    session_max_age_minutes: int = 60 * 24
    session_cleanup_interval_minutes: int = 15
    allowed_origins: Annotated[List[str], NoDecode] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # One-time passcodes
    otp_expiry_minutes: int = 10
    otp_resend_interval_minutes: int = 2
    otp_max_attempts: int = 3
    otp_attempt_window_minutes: int = 60

    # Passwords
    password_min_length: int = 6
    password_reset_expiry_minutes: int = 60

    # Outbound email
    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = False
    smtp_timeout_seconds: int = 10
    mail_sender: str = "Project Management System <noreply@localhost>"
    email_max_attempts: int = 3
    email_retry_delay_seconds: int = 30

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: List[str] | str) -> List[str]:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    """Return memoized settings instance."""

    return Settings()
