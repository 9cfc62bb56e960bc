"""Server-side session records referenced by the signed session cookie."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.timeutils import utcnow
from app.db.base import Base


class AuthSession(Base):
    """Per-client session state, including a pending login OTP."""

    __tablename__ = "auth_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), default=None, index=True)
    role: Mapped[str | None] = mapped_column(String(32), default=None)

    pending_otp: Mapped[str | None] = mapped_column(String(6), default=None)
    pending_otp_expires_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    pending_email: Mapped[str | None] = mapped_column(String(100), default=None)
    pending_user_id: Mapped[int | None] = mapped_column(default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None
