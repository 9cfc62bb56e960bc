"""Shared pytest fixtures for the API and service tests."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

_DB_PATH = Path(tempfile.mkdtemp(prefix="tracker-tests-")) / "tracker-test.db"
os.environ["TRACKER_DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["TRACKER_SESSION_COOKIE_SECURE"] = "false"
os.environ["TRACKER_SECRET_KEY"] = "test-secret-key"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, select, update  # noqa: E402
from sqlalchemy.exc import OperationalError  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.core.dependencies import get_db, get_mailer  # noqa: E402
from app.core.roles import Role  # noqa: E402
from app.core.security import PasswordHasher  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import get_session  # noqa: E402
from app.main import app as application  # noqa: E402
from app.models.auth_session import AuthSession  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.mailer import EmailMessage, Mailer  # noqa: E402

# Seeding and inspection from synchronous tests go through the stdlib driver
# against the same database file the application uses.
sync_engine = create_engine(f"sqlite:///{_DB_PATH}")

_CODE_RE = re.compile(r'<div class="code">(\d{6})</div>')


class RecordingMailer(Mailer):
    """Mailer that keeps dispatched messages instead of scheduling delivery."""

    def __init__(self) -> None:
        super().__init__()
        self.sent: list[EmailMessage] = []

    def dispatch(self, message: EmailMessage) -> None:
        self.sent.append(message)

    def sent_to(self, to: str) -> list[EmailMessage]:
        return [message for message in self.sent if message.to == to]

    def last_code(self, to: str) -> str:
        for message in reversed(self.sent_to(to)):
            match = _CODE_RE.search(message.html)
            if match:
                return match.group(1)
        raise AssertionError(f"No code was sent to {to}")


def build_user(
    email: str = "a@x.com",
    password: str = "secret1",
    *,
    username: str | None = None,
    role: Role = Role.USER,
    verified: bool = False,
    active: bool = True,
) -> User:
    return User(
        username=username or email.split("@")[0],
        email=email,
        password_hash=PasswordHasher.hash(password),
        role=role.value,
        email_verified=verified,
        is_active=active,
        otp_attempts=0,
    )


@pytest.fixture(autouse=True)
def reset_database() -> None:
    """Give every test an empty schema."""

    Base.metadata.drop_all(sync_engine)
    Base.metadata.create_all(sync_engine)


@pytest.fixture()
async def db_session():
    async with get_session() as session:
        yield session


@pytest.fixture()
def add_user(db_session):
    """Async factory persisting users through ``db_session``."""

    async def _add(*args, **kwargs) -> User:
        user = build_user(*args, **kwargs)
        db_session.add(user)
        await db_session.commit()
        return user

    return _add


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def client(mailer: RecordingMailer):
    """Test client with email delivery captured by ``mailer``."""

    application.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(application) as test_client:
        yield test_client
    application.dependency_overrides.clear()


@pytest.fixture()
def failing_commit():
    """Serve requests from a session whose commit always fails."""

    async def _db():
        async with get_session() as session:

            async def _commit():
                raise OperationalError("COMMIT", {}, Exception("database is locked"))

            session.commit = _commit
            yield session

    application.dependency_overrides[get_db] = _db
    yield
    application.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def create_user():
    """Synchronous user factory for endpoint tests."""

    def _create(*args, **kwargs) -> User:
        with Session(sync_engine, expire_on_commit=False) as session:
            user = build_user(*args, **kwargs)
            session.add(user)
            session.commit()
            return user

    return _create


@pytest.fixture()
def fetch_user():
    def _fetch(email: str) -> User | None:
        with Session(sync_engine) as session:
            user = session.scalars(select(User).where(User.email == email)).one_or_none()
            if user is not None:
                session.expunge(user)
            return user

    return _fetch


@pytest.fixture()
def update_user_row():
    """Overwrite columns of a user row, e.g. to move timestamps into the past."""

    def _update(email: str, **values) -> None:
        with Session(sync_engine) as session:
            user = session.scalars(select(User).where(User.email == email)).one()
            for key, value in values.items():
                setattr(user, key, value)
            session.commit()

    return _update


@pytest.fixture()
def update_session_rows():
    def _update(**values) -> None:
        with Session(sync_engine) as session:
            session.execute(update(AuthSession).values(**values))
            session.commit()

    return _update


@pytest.fixture()
def session_rows():
    def _rows() -> list[AuthSession]:
        with Session(sync_engine, expire_on_commit=False) as session:
            rows = list(session.scalars(select(AuthSession)))
            session.expunge_all()
            return rows

    return _rows


@pytest.fixture()
def login_as(client: TestClient, create_user):
    """Create a verified user with ``role`` and log the client in as them."""

    def _login(email: str = "a@x.com", password: str = "secret1", *, role: Role = Role.USER) -> User:
        user = create_user(email, password, role=role, verified=True)
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return user

    return _login
