"""Database model for application users."""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.roles import Role
from app.core.timeutils import utcnow
from app.db.base import Base


class OtpPurpose(str, Enum):
    LOGIN = "LOGIN"
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"


class User(Base):
    """Tracker user with hashed password, global role, and inline OTP state."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    full_name: Mapped[str | None] = mapped_column(String(100), default=None)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(255), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    role: Mapped[str] = mapped_column(String(32), default=Role.USER.value, nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # otp_code, otp_expires_at and otp_purpose are written and cleared together.
    otp_code: Mapped[str | None] = mapped_column(String(6), default=None)
    otp_expires_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    otp_purpose: Mapped[str | None] = mapped_column(String(32), default=None)
    last_otp_sent_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    otp_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    reset_token_hash: Mapped[str | None] = mapped_column(String(64), default=None, index=True)
    reset_token_expires_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def display_name(self) -> str:
        return self.full_name or self.username
