"""Security helpers for password hashing, one-time codes, and session signing."""
from __future__ import annotations

import hashlib
import hmac
import secrets
import string
from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext

from .config import get_settings


_password_context = CryptContext(schemes=["argon2"], deprecated="auto")

OTP_LENGTH = 6
_TEMPORARY_PASSWORD_ALPHABET = string.ascii_letters + string.digits


class PasswordHasher:
    """Hash and verify user passwords using Argon2id."""

    @staticmethod
    def hash(password: str) -> str:
        return _password_context.hash(password)

    @staticmethod
    def verify(password: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        try:
            return _password_context.verify(password, hashed)
        except ValueError:
            # Unrecognised hash format.
            return False


def generate_otp_code() -> str:
    """Return a uniformly random, zero-padded six digit code."""
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def codes_match(expected: str, candidate: str) -> bool:
    """Exact string comparison in constant time."""
    return hmac.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))


def generate_temporary_password(length: int = 8) -> str:
    return "".join(secrets.choice(_TEMPORARY_PASSWORD_ALPHABET) for _ in range(length))


def generate_token(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionSigner:
    """Sign and unsign session cookie payloads."""

    def __init__(self, salt: str = "tracker-session") -> None:
        settings = get_settings()
        self._serializer = URLSafeTimedSerializer(settings.secret_key, salt=salt)

    def dumps(self, data: dict[str, Any]) -> str:
        return self._serializer.dumps(data)

    def loads(self, token: str, max_age: int | None = None) -> dict[str, Any]:
        try:
            return self._serializer.loads(token, max_age=max_age)
        except (BadSignature, SignatureExpired) as exc:
            raise ValueError("Invalid or expired session token") from exc
