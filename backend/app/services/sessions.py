"""Server-side session records: creation, lookup, rotation and pending login OTPs."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.security import generate_token
from app.core.timeutils import utcnow
from app.models.auth_session import AuthSession
from app.models.user import User

logger = logging.getLogger(__name__)


def _lifetime() -> timedelta:
    return timedelta(minutes=get_settings().session_max_age_minutes)


async def open_session(session: AsyncSession, *, now: datetime | None = None) -> AuthSession:
    """Create an anonymous session record."""
    now = now or utcnow()
    record = AuthSession(id=generate_token(32), created_at=now, expires_at=now + _lifetime())
    session.add(record)
    await session.flush()
    return record


async def load_session(
    session: AsyncSession, session_id: str | None, *, now: datetime | None = None
) -> AuthSession | None:
    if not session_id:
        return None
    record = await session.get(AuthSession, session_id)
    if record is None:
        return None
    if record.expires_at <= (now or utcnow()):
        await session.delete(record)
        await session.flush()
        return None
    return record


async def establish(
    session: AsyncSession,
    current: AuthSession | None,
    user: User,
    *,
    now: datetime | None = None,
) -> AuthSession:
    """Bind the user to a freshly issued session id, discarding the previous one."""
    if current is not None:
        await session.delete(current)
    record = await open_session(session, now=now)
    record.user_id = user.id
    record.role = user.role
    await session.flush()
    logger.info("Session established for user %s", user.id)
    return record


async def destroy(session: AsyncSession, record: AuthSession | None) -> None:
    if record is None:
        return
    if record.user_id is not None:
        logger.info("Session closed for user %s", record.user_id)
    await session.delete(record)
    await session.flush()


def status(record: AuthSession | None) -> dict[str, object]:
    if record is None or not record.is_authenticated:
        return {"authenticated": False}
    return {"authenticated": True, "user_role": record.role}


async def current_user(session: AsyncSession, record: AuthSession | None) -> User | None:
    if record is None or record.user_id is None:
        return None
    result = await session.execute(
        select(User).where(User.id == record.user_id, User.is_active.is_(True))
    )
    return result.scalar_one_or_none()


async def set_pending_login_otp(
    session: AsyncSession,
    record: AuthSession,
    *,
    code: str,
    expires_at: datetime,
    email: str,
    user_id: int,
) -> AuthSession:
    record.pending_otp = code
    record.pending_otp_expires_at = expires_at
    record.pending_email = email
    record.pending_user_id = user_id
    await session.flush()
    return record


async def clear_pending_login_otp(session: AsyncSession, record: AuthSession) -> AuthSession:
    record.pending_otp = None
    record.pending_otp_expires_at = None
    record.pending_email = None
    record.pending_user_id = None
    await session.flush()
    return record


async def purge_expired_sessions(session: AsyncSession, *, now: datetime | None = None) -> int:
    result = await session.execute(delete(AuthSession).where(AuthSession.expires_at <= (now or utcnow())))
    return result.rowcount or 0


async def sync_user_sessions(session: AsyncSession, user: User) -> None:
    """Propagate a role or activation change to the user's open sessions."""
    if not user.is_active:
        await session.execute(delete(AuthSession).where(AuthSession.user_id == user.id))
        logger.info("Revoked sessions of deactivated user %s", user.id)
        return
    result = await session.execute(select(AuthSession).where(AuthSession.user_id == user.id))
    for record in result.scalars():
        record.role = user.role
    await session.flush()
