"""Templated outbound email with fire-and-forget delivery and retry."""
from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Protocol

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import Settings, get_settings
from app.models.user import User
from app.services.scheduler import schedule_email_delivery

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_templates = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


@dataclass(slots=True)
class EmailMessage:
    to: str
    subject: str
    html: str


class MailTransport(Protocol):
    def send(self, message: EmailMessage) -> None:
        ...


class SmtpTransport:
    """Blocking SMTP delivery; callers run it off the event loop."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def send(self, message: EmailMessage) -> None:
        settings = self._settings
        mime = MIMEMultipart()
        mime["From"] = settings.mail_sender
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime.attach(MIMEText(message.html, "html", "utf-8"))

        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_username:
                server.login(settings.smtp_username, settings.smtp_password or "")
            server.sendmail(settings.mail_sender, [message.to], mime.as_string())


def render_email(template_name: str, **context: object) -> str:
    context.setdefault("app_name", get_settings().app_name)
    return _templates.get_template(template_name).render(**context)


def login_otp_email(user: User, code: str, expires_in_minutes: int) -> EmailMessage:
    html = render_email(
        "login_otp.html", name=user.display_name, code=code, expires_in_minutes=expires_in_minutes
    )
    return EmailMessage(to=user.email, subject="Login Verification - Project Management System", html=html)


def verification_otp_email(user: User, code: str, expires_in_minutes: int) -> EmailMessage:
    html = render_email(
        "verification_otp.html", name=user.display_name, code=code, expires_in_minutes=expires_in_minutes
    )
    return EmailMessage(to=user.email, subject="Email Verification - Project Management System", html=html)


def password_reset_email(user: User, token: str) -> EmailMessage:
    settings = get_settings()
    reset_url = f"{settings.frontend_url.rstrip('/')}/reset-password?token={token}"
    html = render_email(
        "password_reset.html",
        name=user.display_name,
        reset_url=reset_url,
        expires_in_minutes=settings.password_reset_expiry_minutes,
    )
    return EmailMessage(to=user.email, subject="Password Reset - Project Management System", html=html)


def invitation_email(user: User, temporary_password: str) -> EmailMessage:
    settings = get_settings()
    html = render_email(
        "invitation.html",
        name=user.display_name,
        username=user.username,
        email=user.email,
        temporary_password=temporary_password,
        login_url=f"{settings.frontend_url.rstrip('/')}/login",
    )
    return EmailMessage(to=user.email, subject="You're invited - Project Management System", html=html)


class Mailer:
    """Dispatch emails through the scheduler, retrying failed deliveries."""

    def __init__(
        self,
        transport: MailTransport | None = None,
        *,
        max_attempts: int | None = None,
        retry_delay_seconds: int | None = None,
    ) -> None:
        settings = get_settings()
        self._transport = transport or SmtpTransport(settings)
        self._max_attempts = max(max_attempts or settings.email_max_attempts, 1)
        self._retry_delay_seconds = (
            settings.email_retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds
        )

    def dispatch(self, message: EmailMessage) -> None:
        """Queue the message and return immediately."""
        schedule_email_delivery(self.deliver, message, 1)

    async def deliver(self, message: EmailMessage, attempt: int = 1) -> bool:
        try:
            await asyncio.to_thread(self._transport.send, message)
        except (smtplib.SMTPException, OSError) as exc:
            if attempt >= self._max_attempts:
                logger.error(
                    "Giving up on email '%s' to %s after %d attempt(s): %s",
                    message.subject, message.to, attempt, exc,
                )
                return False
            logger.warning(
                "Email '%s' to %s failed (attempt %d/%d), retrying in %ss: %s",
                message.subject, message.to, attempt, self._max_attempts, self._retry_delay_seconds, exc,
            )
            schedule_email_delivery(self.deliver, message, attempt + 1, delay_seconds=self._retry_delay_seconds)
            return False
        logger.info("Delivered email '%s' to %s", message.subject, message.to)
        return True


_mailer: Mailer | None = None


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = Mailer()
    return _mailer
