"""Reusable dependencies for FastAPI routes."""
from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import Unauthorized
from app.core.roles import Role
from app.core.security import SessionSigner
from app.db.session import get_session
from app.models.auth_session import AuthSession
from app.models.user import User
from app.services import sessions
from app.services.authorization import authorize
from app.services.mailer import Mailer
from app.services.mailer import get_mailer as _default_mailer


async def get_db() -> AsyncIterator[AsyncSession]:
    async with get_session() as session:
        yield session


def get_mailer() -> Mailer:
    return _default_mailer()


def read_session_id(request: Request) -> str | None:
    settings = get_settings()
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    try:
        payload = SessionSigner().loads(token, max_age=settings.session_max_age_minutes * 60)
    except ValueError:
        return None
    session_id = payload.get("sid") if isinstance(payload, dict) else None
    return session_id if isinstance(session_id, str) else None


async def get_auth_session(
    request: Request,
    session: AsyncSession = Depends(get_db),
) -> AuthSession | None:
    """Server-side session for the request's cookie, or None."""
    return await sessions.load_session(session, read_session_id(request))


async def require_authenticated(
    auth_session: AuthSession | None = Depends(get_auth_session),
) -> AuthSession:
    if auth_session is None or not auth_session.is_authenticated:
        raise Unauthorized()
    return auth_session


async def get_current_user(
    session: AsyncSession = Depends(get_db),
    auth_session: AuthSession = Depends(require_authenticated),
) -> User:
    user = await sessions.current_user(session, auth_session)
    if not user:
        raise Unauthorized()
    return user


def require_roles(*roles: Role):
    """Dependency factory enforcing that the session holds one of ``roles``."""
    allowed = frozenset(roles)

    async def _dependency(
        auth_session: AuthSession | None = Depends(get_auth_session),
    ) -> AuthSession:
        authorize(auth_session, allowed)
        return auth_session

    return _dependency
