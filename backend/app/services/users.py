"""User service functions for credential storage, lookup and password management."""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import Conflict, ValidationError
from app.core.roles import role_for_invite
from app.core.security import PasswordHasher, generate_temporary_password, generate_token, hash_token
from app.core.timeutils import utcnow
from app.models.user import User
from app.schemas.user import EMAIL_PATTERN, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(EMAIL_PATTERN)


def normalize_email(raw: str | None) -> str:
    # Emails are matched exactly as stored; only surrounding whitespace is dropped.
    return (raw or "").strip()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    """Return the active user with this email; inactive users are invisible."""
    result = await session.execute(
        select(User).where(User.email == normalize_email(email), User.is_active.is_(True))
    )
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: int, *, active_only: bool = True) -> User | None:
    query = select(User).where(User.id == user_id)
    if active_only:
        query = query.where(User.is_active.is_(True))
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def list_users(session: AsyncSession) -> list[User]:
    result = await session.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


async def authenticate_user(session: AsyncSession, email: str, password: str) -> User | None:
    user = await get_user_by_email(session, email)
    if not user:
        return None
    if not PasswordHasher.verify(password, user.password_hash):
        return None
    return user


async def _identity_taken(session: AsyncSession, email: str, username: str) -> bool:
    result = await session.execute(
        select(User.id).where(or_(User.email == email, User.username == username))
    )
    return result.first() is not None


async def create_user(session: AsyncSession, user_in: UserCreate) -> User:
    email = normalize_email(user_in.email)
    if await _identity_taken(session, email, user_in.username):
        raise Conflict("User with this email or username already exists")

    user = User(
        username=user_in.username,
        email=email,
        full_name=user_in.full_name or user_in.username,
        password_hash=PasswordHasher.hash(user_in.password),
        role=user_in.role.value,
        email_verified=False,
        otp_attempts=0,
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError as exc:
        await session.rollback()
        raise Conflict("User with this email or username already exists") from exc
    logger.info("Created user %s with role %s", user.id, user.role)
    return user


async def _unique_username(session: AsyncSession, email: str) -> str:
    base = email.split("@", 1)[0][:45] or "user"
    candidate = base
    counter = 1
    while True:
        result = await session.execute(select(func.count()).select_from(User).where(User.username == candidate))
        if not result.scalar_one():
            return candidate
        candidate = f"{base}{counter}"
        counter += 1


async def invite_user(session: AsyncSession, email: str, role: str | None) -> tuple[User, str]:
    """Create an invited user with a temporary password.

    The username is derived from the local part of the email, suffixed with a
    counter until it is unique. The temporary password is returned so that it
    can be delivered in the invitation email; it is never stored in clear.
    """
    email = normalize_email(email)
    if not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")

    existing = await session.execute(select(User.id).where(User.email == email))
    if existing.first() is not None:
        raise Conflict("User with this email already exists")

    temporary_password = generate_temporary_password()
    username = await _unique_username(session, email)
    user = User(
        username=username,
        email=email,
        full_name=username,
        password_hash=PasswordHasher.hash(temporary_password),
        role=role_for_invite(role).value,
        email_verified=False,
        otp_attempts=0,
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError as exc:
        await session.rollback()
        raise Conflict("User with this email already exists") from exc
    logger.info("Invited user %s as %s", user.id, user.role)
    return user, temporary_password


async def update_user(session: AsyncSession, user: User, data: UserUpdate) -> User:
    if data.role is not None and data.role.value != user.role:
        logger.info("Changing role of user %s from %s to %s", user.id, user.role, data.role.value)
        user.role = data.role.value
    if data.is_active is not None:
        user.is_active = data.is_active
    if data.full_name is not None:
        user.full_name = data.full_name
    if data.avatar_url is not None:
        user.avatar_url = data.avatar_url or None
    await session.flush()
    return user


async def record_login(session: AsyncSession, user: User, *, now: datetime | None = None) -> User:
    user.last_login_at = now or utcnow()
    await session.flush()
    return user


def _check_password_length(password: str) -> None:
    minimum = get_settings().password_min_length
    if len(password) < minimum:
        raise ValidationError(f"New password must be at least {minimum} characters long")


async def change_password(session: AsyncSession, user: User, current_password: str, new_password: str) -> User:
    _check_password_length(new_password)
    if not PasswordHasher.verify(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = PasswordHasher.hash(new_password)
    await session.flush()
    logger.info("Password changed for user %s", user.id)
    return user


async def request_password_reset(
    session: AsyncSession, email: str, *, now: datetime | None = None
) -> tuple[User, str] | None:
    """Store a reset token for an active user. Unknown emails yield None."""
    user = await get_user_by_email(session, email)
    if not user:
        return None
    now = now or utcnow()
    token = generate_token()
    user.reset_token_hash = hash_token(token)
    user.reset_token_expires_at = now + timedelta(minutes=get_settings().password_reset_expiry_minutes)
    await session.flush()
    logger.info("Password reset requested for user %s", user.id)
    return user, token


async def reset_password(
    session: AsyncSession, token: str, new_password: str, *, now: datetime | None = None
) -> User:
    if len(new_password) < get_settings().password_min_length:
        raise ValidationError(
            f"Password must be at least {get_settings().password_min_length} characters long"
        )
    now = now or utcnow()
    result = await session.execute(
        select(User).where(
            User.reset_token_hash == hash_token(token),
            User.reset_token_expires_at > now,
            User.is_active.is_(True),
        )
    )
    user = result.scalar_one_or_none()
    if not user:
        raise ValidationError("Invalid or expired reset token")
    user.password_hash = PasswordHasher.hash(new_password)
    user.reset_token_hash = None
    user.reset_token_expires_at = None
    await session.flush()
    logger.info("Password reset completed for user %s", user.id)
    return user
