"""Tests for role checks on mutating operations."""

from __future__ import annotations

import pytest

from app.core.errors import Forbidden, Unauthorized
from app.core.roles import Role
from app.models.auth_session import AuthSession
from app.services.authorization import (
    COLLABORATOR_ROLES,
    STRUCTURAL_ROLES,
    authorize,
    authorize_item_type,
    session_role,
)


def _session(role: str | None, user_id: int | None = 1) -> AuthSession:
    return AuthSession(id="s", user_id=user_id, role=role)


def test_anonymous_sessions_are_unauthorized():
    with pytest.raises(Unauthorized):
        authorize(None, STRUCTURAL_ROLES)
    with pytest.raises(Unauthorized):
        authorize(_session(None, user_id=None), COLLABORATOR_ROLES)
    with pytest.raises(Unauthorized):
        authorize_item_type(None, "STORY")


@pytest.mark.parametrize(
    "role, roles, allowed",
    [
        ("ADMIN", STRUCTURAL_ROLES, True),
        ("SCRUM_MASTER", STRUCTURAL_ROLES, False),
        ("USER", STRUCTURAL_ROLES, False),
        ("ADMIN", COLLABORATOR_ROLES, True),
        ("SCRUM_MASTER", COLLABORATOR_ROLES, True),
        ("SCRUM", COLLABORATOR_ROLES, True),
        ("USER", COLLABORATOR_ROLES, False),
        ("OWNER", COLLABORATOR_ROLES, False),
    ],
)
def test_authorize(role, roles, allowed):
    record = _session(role)
    if allowed:
        assert authorize(record, roles) is True
    else:
        with pytest.raises(Forbidden):
            authorize(record, roles)


def test_session_role_normalizes_legacy_spelling():
    assert session_role(_session("scrum")) is Role.SCRUM_MASTER
    assert session_role(_session("USER", user_id=None)) is None


@pytest.mark.parametrize("item_type", ["EPIC", "feature"])
def test_elevated_item_types_need_collaborator_role(item_type):
    with pytest.raises(Forbidden):
        authorize_item_type(_session("USER"), item_type)
    assert authorize_item_type(_session("SCRUM_MASTER"), item_type) is True


@pytest.mark.parametrize("item_type", ["STORY", "TASK", "BUG"])
def test_other_item_types_only_need_a_session(item_type):
    assert authorize_item_type(_session("USER"), item_type) is True
