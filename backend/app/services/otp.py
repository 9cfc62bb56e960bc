"""Issue and verify one-time passcodes stored on the user row.

Issuance is rate limited per user: one code per ``otp_resend_interval_minutes``
and at most ``otp_max_attempts`` codes per ``otp_attempt_window_minutes``. The
attempt counter is reset when a full window has passed since the last send.

All state transitions are single conditional UPDATE statements keyed on the
values read beforehand, so two concurrent requests for the same user cannot
both issue (or both consume) a code.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import (
    AlreadyVerified,
    Expired,
    InvalidCode,
    NoOtpPending,
    NotFound,
    RateLimited,
    TooManyAttempts,
)
from app.core.security import codes_match, generate_otp_code
from app.core.timeutils import utcnow
from app.models.user import OtpPurpose, User
from app.services.mailer import EmailMessage, verification_otp_email
from app.services.users import get_user_by_email

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IssuedOtp:
    code: str
    expires_at: datetime
    expires_in_minutes: int


def _matches(column, value):
    return column.is_(None) if value is None else column == value


def _verification_pending(user: User, now: datetime) -> bool:
    return (
        user.otp_code is not None
        and user.otp_purpose == OtpPurpose.EMAIL_VERIFICATION.value
        and user.otp_expires_at is not None
        and user.otp_expires_at >= now
    )


async def issue_otp(
    session: AsyncSession,
    user: User,
    purpose: OtpPurpose,
    *,
    now: datetime | None = None,
) -> IssuedOtp:
    """Generate and persist a new code for ``user`` if the rate limits allow it."""
    settings = get_settings()
    now = now or utcnow()
    previous_sent_at = user.last_otp_sent_at
    previous_attempts = user.otp_attempts or 0
    attempts = previous_attempts

    if previous_sent_at is not None:
        elapsed = now - previous_sent_at
        if elapsed >= timedelta(minutes=settings.otp_attempt_window_minutes):
            attempts = 0
        if elapsed < timedelta(minutes=settings.otp_resend_interval_minutes):
            logger.warning("OTP request for user %s rejected: resend interval", user.id)
            raise RateLimited(
                f"Please wait {settings.otp_resend_interval_minutes} minutes before requesting another OTP"
            )

    if attempts >= settings.otp_max_attempts:
        logger.warning("OTP request for user %s rejected: attempt cap", user.id)
        raise TooManyAttempts()

    code = generate_otp_code()
    expires_at = now + timedelta(minutes=settings.otp_expiry_minutes)
    values = {"last_otp_sent_at": now, "otp_attempts": attempts + 1}
    # A live email verification code is never displaced by a login code; the
    # login flow keeps its copy on the session record.
    if not (purpose is OtpPurpose.LOGIN and _verification_pending(user, now)):
        values.update(otp_code=code, otp_expires_at=expires_at, otp_purpose=purpose.value)
    result = await session.execute(
        update(User)
        .where(
            User.id == user.id,
            User.otp_attempts == previous_attempts,
            _matches(User.last_otp_sent_at, previous_sent_at),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("OTP request for user %s lost a concurrent issuance race", user.id)
        raise RateLimited(
            f"Please wait {settings.otp_resend_interval_minutes} minutes before requesting another OTP"
        )

    await session.refresh(user)
    logger.info("Issued %s OTP for user %s (attempt %d)", purpose.value, user.id, attempts + 1)
    return IssuedOtp(code=code, expires_at=expires_at, expires_in_minutes=settings.otp_expiry_minutes)


async def clear_otp(session: AsyncSession, user: User, purpose: OtpPurpose) -> None:
    """Drop a pending code of the given purpose and reset the attempt counter."""
    await session.execute(
        update(User)
        .where(User.id == user.id, User.otp_purpose == purpose.value)
        .values(otp_code=None, otp_expires_at=None, otp_purpose=None)
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        update(User)
        .where(User.id == user.id)
        .values(otp_attempts=0)
        .execution_options(synchronize_session=False)
    )
    await session.refresh(user)


async def send_email_verification_otp(
    session: AsyncSession,
    email: str,
    *,
    now: datetime | None = None,
) -> tuple[IssuedOtp, EmailMessage]:
    """Issue a verification code and build its email; the caller sends it after committing."""
    user = await get_user_by_email(session, email)
    if not user:
        raise NotFound("User not found or inactive")
    if user.email_verified:
        raise AlreadyVerified()

    issued = await issue_otp(session, user, OtpPurpose.EMAIL_VERIFICATION, now=now)
    return issued, verification_otp_email(user, issued.code, issued.expires_in_minutes)


async def verify_email_otp(
    session: AsyncSession,
    email: str,
    code: str,
    *,
    now: datetime | None = None,
) -> User:
    """Mark the user's email as verified if ``code`` matches the pending code."""
    now = now or utcnow()
    user = await get_user_by_email(session, email)
    if not user:
        raise NotFound("User not found or inactive")
    if user.email_verified:
        raise AlreadyVerified()
    if (
        not user.otp_code
        or not user.otp_expires_at
        or user.otp_purpose != OtpPurpose.EMAIL_VERIFICATION.value
    ):
        raise NoOtpPending()
    if now > user.otp_expires_at:
        raise Expired()
    if not codes_match(user.otp_code, code):
        logger.warning("Invalid email verification code for user %s", user.id)
        raise InvalidCode()

    result = await session.execute(
        update(User)
        .where(
            User.id == user.id,
            User.otp_code == user.otp_code,
            User.otp_purpose == OtpPurpose.EMAIL_VERIFICATION.value,
        )
        .values(
            email_verified=True,
            otp_code=None,
            otp_expires_at=None,
            otp_purpose=None,
            otp_attempts=0,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NoOtpPending()

    await session.refresh(user)
    logger.info("Email verified for user %s", user.id)
    return user
