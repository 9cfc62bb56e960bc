"""Endpoint tests for password login, sessions and password management."""

from __future__ import annotations

import re

from sqlalchemy.exc import OperationalError

from app.core.dependencies import get_db
from app.core.roles import Role
from app.main import app as application


def _login(client, email="a@x.com", password="secret1"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_login_returns_public_user_and_sets_cookie(client, create_user):
    create_user(verified=True, role=Role.SCRUM_MASTER)

    response = _login(client)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Login successful"
    assert body["user"]["email"] == "a@x.com"
    assert body["user"]["role"] == "SCRUM_MASTER"
    assert "fullName" in body["user"]
    assert "password_hash" not in body["user"]
    assert "otp_code" not in body["user"]
    assert "tracker_session" in response.cookies

    status = client.get("/api/auth/status")
    assert status.json() == {"authenticated": True, "userRole": "SCRUM_MASTER"}

    me = client.get("/api/auth/user")
    assert me.status_code == 200
    assert me.json()["username"] == "a"


def test_login_with_wrong_password(client, create_user, fetch_user, mailer):
    create_user(verified=True)

    response = _login(client, password="wrong")

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"
    user = fetch_user("a@x.com")
    assert user.otp_attempts == 0
    assert user.otp_code is None
    assert mailer.sent == []


def test_inactive_user_is_indistinguishable_from_unknown(client, create_user):
    create_user("gone@x.com", verified=True, active=False)

    inactive = _login(client, email="gone@x.com")
    unknown = _login(client, email="nobody@x.com")

    assert inactive.status_code == unknown.status_code == 401
    assert inactive.json() == unknown.json()


def test_login_requires_verified_email(client, create_user):
    create_user()

    response = _login(client)

    assert response.status_code == 403
    body = response.json()
    assert body["error_code"] == "EMAIL_NOT_VERIFIED"
    assert body["email"] == "a@x.com"
    assert body["require_verification"] is True


def test_login_with_missing_fields(client):
    response = client.post("/api/auth/login", json={"email": "a@x.com"})

    assert response.status_code == 400
    body = response.json()
    assert "password" in body["message"]
    assert body["fields"] == ["password"]


def test_anonymous_status_and_user(client):
    assert client.get("/api/auth/status").json() == {"authenticated": False}

    response = client.get("/api/auth/user")
    assert response.status_code == 401
    assert response.json() == {"message": "Not authenticated"}


def test_tampered_cookie_is_ignored(client, login_as):
    login_as()
    client.cookies.clear()
    client.cookies.set("tracker_session", "forged-value")

    assert client.get("/api/auth/status").json() == {"authenticated": False}


def test_repeated_login_rotates_session(client, login_as, session_rows):
    login_as()
    first_ids = {row.id for row in session_rows()}

    _login(client)
    second_ids = {row.id for row in session_rows()}

    assert len(first_ids) == len(second_ids) == 1
    assert first_ids.isdisjoint(second_ids)


def test_logout_destroys_session(client, login_as, session_rows):
    login_as()

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}
    assert session_rows() == []
    assert client.get("/api/auth/status").json() == {"authenticated": False}


def test_change_password_requires_session(client):
    response = client.post(
        "/api/auth/change-password", json={"currentPassword": "secret1", "newPassword": "abcdefgh"}
    )

    assert response.status_code == 401


def test_change_password_rejects_short_password(client, login_as):
    login_as()

    response = client.post(
        "/api/auth/change-password", json={"currentPassword": "secret1", "newPassword": "abcde"}
    )

    assert response.status_code == 400
    assert "at least 6 characters" in response.json()["message"]
    assert _login(client).status_code == 200


def test_change_password_rejects_wrong_current_password(client, login_as):
    login_as()

    response = client.post(
        "/api/auth/change-password", json={"currentPassword": "not-it", "newPassword": "abcdefgh"}
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Current password is incorrect"}
    assert _login(client).status_code == 200


def test_change_password(client, login_as):
    login_as()

    response = client.post(
        "/api/auth/change-password", json={"currentPassword": "secret1", "newPassword": "abcdefgh"}
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Password changed successfully"}
    assert _login(client).status_code == 401
    assert _login(client, password="abcdefgh").status_code == 200


def test_forgot_password_does_not_reveal_accounts(client, mailer):
    response = client.post("/api/auth/forgot-password", json={"email": "nobody@x.com"})

    assert response.status_code == 200
    assert response.json() == {"message": "If this email exists, a password reset link has been sent"}
    assert mailer.sent == []


def test_forgot_and_reset_password(client, create_user, mailer):
    create_user(verified=True)

    response = client.post("/api/auth/forgot-password", json={"email": "a@x.com"})
    assert response.status_code == 200
    [message] = mailer.sent_to("a@x.com")
    token = re.search(r"token=([A-Za-z0-9_\-]+)", message.html).group(1)

    reset = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new"})
    assert reset.status_code == 200
    assert reset.json() == {"message": "Password reset successfully"}

    assert _login(client).status_code == 401
    assert _login(client, password="brand-new").status_code == 200

    again = client.post("/api/auth/reset-password", json={"token": token, "password": "other-pass"})
    assert again.status_code == 400
    assert again.json() == {"message": "Invalid or expired reset token"}


def test_database_failures_are_reported_generically(client):
    async def broken_db():
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))
        yield

    application.dependency_overrides[get_db] = broken_db

    response = client.get("/api/auth/status")

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}
    assert "disk" not in response.text
