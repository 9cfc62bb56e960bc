"""Login flows: password login and the two-step login with an emailed OTP."""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import EmailNotVerified, Expired, InvalidCredentials, InvalidOrExpired
from app.core.security import codes_match
from app.core.timeutils import utcnow
from app.models.auth_session import AuthSession
from app.models.user import OtpPurpose, User
from app.services import sessions
from app.services.mailer import EmailMessage, login_otp_email
from app.services.otp import IssuedOtp, clear_otp, issue_otp
from app.services.users import authenticate_user, normalize_email, record_login

logger = logging.getLogger(__name__)


async def password_login(
    session: AsyncSession,
    email: str,
    password: str,
    *,
    now: datetime | None = None,
) -> User:
    user = await authenticate_user(session, email, password)
    if not user:
        logger.warning("Password login failed")
        raise InvalidCredentials()
    if not user.email_verified:
        raise EmailNotVerified(user.email)
    return await record_login(session, user, now=now)


async def send_login_otp(
    session: AsyncSession,
    auth_session: AuthSession,
    email: str,
    password: str,
    *,
    now: datetime | None = None,
) -> tuple[IssuedOtp, EmailMessage]:
    """Check the password, then issue a login code bound to ``auth_session``.

    Returns the code together with its email, to be sent once the session
    has been committed.
    """
    user = await authenticate_user(session, email, password)
    if not user:
        logger.warning("Login OTP request with invalid credentials")
        raise InvalidCredentials()

    issued = await issue_otp(session, user, OtpPurpose.LOGIN, now=now)
    await sessions.set_pending_login_otp(
        session,
        auth_session,
        code=issued.code,
        expires_at=issued.expires_at,
        email=user.email,
        user_id=user.id,
    )
    return issued, login_otp_email(user, issued.code, issued.expires_in_minutes)


async def verify_login_otp(
    session: AsyncSession,
    auth_session: AuthSession | None,
    email: str,
    password: str,
    code: str,
    *,
    now: datetime | None = None,
) -> tuple[User, AuthSession]:
    """Complete an OTP login and return the user with the newly established session."""
    now = now or utcnow()
    email = normalize_email(email)
    if (
        auth_session is None
        or not auth_session.pending_otp
        or auth_session.pending_email != email
        or not codes_match(auth_session.pending_otp, code)
    ):
        logger.warning("Login OTP rejected: no matching pending code")
        raise InvalidOrExpired()

    if auth_session.pending_otp_expires_at is None or now > auth_session.pending_otp_expires_at:
        await sessions.clear_pending_login_otp(session, auth_session)
        raise Expired()

    user = await authenticate_user(session, email, password)
    if not user or user.id != auth_session.pending_user_id:
        logger.warning("Login OTP accepted but credentials no longer match")
        raise InvalidCredentials()

    await clear_otp(session, user, OtpPurpose.LOGIN)
    await sessions.clear_pending_login_otp(session, auth_session)
    await record_login(session, user, now=now)
    established = await sessions.establish(session, auth_session, user, now=now)
    return user, established
