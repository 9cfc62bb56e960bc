"""Helpers for writing the signed session cookie."""
from __future__ import annotations

from fastapi import Response

from app.core.config import get_settings
from app.core.security import SessionSigner
from app.models.auth_session import AuthSession


def set_session_cookie(response: Response, record: AuthSession) -> None:
    settings = get_settings()
    token = SessionSigner().dumps({"sid": record.id})
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        max_age=settings.session_max_age_minutes * 60,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(get_settings().session_cookie_name)
