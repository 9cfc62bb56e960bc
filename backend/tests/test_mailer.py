"""Tests for email rendering and delivery retries."""

from __future__ import annotations

import smtplib

from app.models.user import User
from app.services import mailer as mailer_module
from app.services.mailer import (
    EmailMessage,
    Mailer,
    invitation_email,
    password_reset_email,
    verification_otp_email,
)


class FlakyTransport:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.delivered: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> None:
        if self.failures:
            self.failures -= 1
            raise smtplib.SMTPServerDisconnected("connection lost")
        self.delivered.append(message)


def _user(**overrides) -> User:
    values = {"id": 1, "username": "alice", "email": "alice@x.com", "full_name": None}
    values.update(overrides)
    return User(**values)


def _capture_schedules(monkeypatch) -> list[tuple]:
    scheduled: list[tuple] = []

    def fake_schedule(deliver, message, attempt=1, delay_seconds=0):
        scheduled.append((message, attempt, delay_seconds))
        return f"job-{len(scheduled)}"

    monkeypatch.setattr(mailer_module, "schedule_email_delivery", fake_schedule)
    return scheduled


def test_verification_email_contains_code_and_expiry():
    message = verification_otp_email(_user(), "004217", 10)

    assert message.to == "alice@x.com"
    assert '<div class="code">004217</div>' in message.html
    assert "10 minutes" in message.html
    assert "alice" in message.html


def test_templates_escape_user_content():
    message = verification_otp_email(_user(full_name="<script>x</script>"), "123456", 10)

    assert "<script>x</script>" not in message.html
    assert "&lt;script&gt;" in message.html


def test_password_reset_email_links_to_frontend():
    message = password_reset_email(_user(), "tok-123")

    assert "/reset-password?token=tok-123" in message.html


def test_invitation_email_carries_temporary_password():
    message = invitation_email(_user(), "Ab3dEf7h")

    assert "Ab3dEf7h" in message.html
    assert "alice" in message.html


def test_dispatch_queues_first_attempt(monkeypatch):
    scheduled = _capture_schedules(monkeypatch)
    message = EmailMessage(to="alice@x.com", subject="Hi", html="<p>hi</p>")

    Mailer(FlakyTransport(0)).dispatch(message)

    assert scheduled == [(message, 1, 0)]


async def test_deliver_success():
    transport = FlakyTransport(0)
    message = EmailMessage(to="alice@x.com", subject="Hi", html="<p>hi</p>")

    assert await Mailer(transport).deliver(message) is True
    assert transport.delivered == [message]


async def test_failed_delivery_is_retried_later(monkeypatch):
    scheduled = _capture_schedules(monkeypatch)
    transport = FlakyTransport(1)
    mailer = Mailer(transport, max_attempts=3, retry_delay_seconds=5)
    message = EmailMessage(to="alice@x.com", subject="Hi", html="<p>hi</p>")

    assert await mailer.deliver(message, 1) is False
    assert scheduled == [(message, 2, 5)]

    assert await mailer.deliver(message, 2) is True
    assert transport.delivered == [message]


async def test_delivery_gives_up_after_max_attempts(monkeypatch, caplog):
    scheduled = _capture_schedules(monkeypatch)
    mailer = Mailer(FlakyTransport(5), max_attempts=2, retry_delay_seconds=5)
    message = EmailMessage(to="alice@x.com", subject="Hi", html="<p>hi</p>")

    assert await mailer.deliver(message, 2) is False

    assert scheduled == []
    assert "Giving up" in caplog.text
