"""Tests for bearer-token auth, the signup/signin bootstrap and /auth/me."""

import uuid
from datetime import timedelta

import pytest

from helpdesk.core.config import settings
from helpdesk.core.security import (
    create_access_token,
    decode_access_token,
    extract_bearer_token,
    token_role_claim,
)
from helpdesk.db.enums import AuditAction, Role
from helpdesk.db.models import AuditLog, User


def _bearer(user_id: uuid.UUID, email: str = "new.user@test.com", **kwargs) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, email, **kwargs)}"}


# =============================================================================
# Token helpers (unit)
# =============================================================================

def test_extract_bearer_token():
    assert extract_bearer_token("Bearer abc") == "abc"
    assert extract_bearer_token("bearer   abc ") == "abc"
    assert extract_bearer_token("Basic abc") is None
    assert extract_bearer_token("Bearer ") is None
    assert extract_bearer_token(None) is None


def test_token_round_trip_carries_role_claim():
    user_id = uuid.uuid4()
    payload = decode_access_token(create_access_token(user_id, "a@test.com", role="AGENT"))
    assert payload["sub"] == str(user_id)
    assert token_role_claim(payload) == "AGENT"


def test_previous_secret_still_accepted(monkeypatch):
    token = create_access_token(uuid.uuid4(), "a@test.com")
    monkeypatch.setattr(settings, "AUTH_JWT_SECRET", "rotated-secret")
    monkeypatch.setattr(settings, "AUTH_JWT_SECRET_PREVIOUS", "test-secret")
    assert decode_access_token(token)["email"] == "a@test.com"


async def test_expired_token_is_401(client, customer):
    headers = {
        "Authorization": "Bearer "
        + create_access_token(customer.id, customer.email, expires_in=timedelta(seconds=-5))
    }
    response = await client.get("/auth/me", headers=headers)
    assert response.status_code == 401


async def test_unknown_user_is_401(client):
    response = await client.get("/auth/me", headers=_bearer(uuid.uuid4()))
    assert response.status_code == 401


# =============================================================================
# POST /auth
# =============================================================================

async def test_signup_creates_customer(client, db):
    user_id = uuid.uuid4()
    response = await client.post(
        "/auth",
        json={"email": "New.User@Test.com", "action": "signup"},
        headers=_bearer(user_id),
    )
    assert response.status_code == 200
    assert response.json() == {
        "user_id": str(user_id),
        "email": "new.user@test.com",
        "role": "CUSTOMER",
    }

    user = db.get(User, user_id)
    assert user.role == Role.CUSTOMER
    audit = db.query(AuditLog).filter(AuditLog.entity_id == user_id).one()
    assert audit.action == AuditAction.CREATE


async def test_signup_cannot_self_assign_staff_role(client):
    response = await client.post(
        "/auth",
        json={"email": "x@test.com", "role": "ADMIN", "action": "signup"},
        headers=_bearer(uuid.uuid4()),
    )
    assert response.status_code == 403


async def test_signup_staff_role_allowed_in_dev(client, monkeypatch):
    monkeypatch.setattr(settings, "ENV", "dev")
    response = await client.post(
        "/auth",
        json={"email": "dev@test.com", "role": "AGENT", "action": "signup"},
        headers=_bearer(uuid.uuid4()),
    )
    assert response.status_code == 200
    assert response.json()["role"] == "AGENT"


async def test_signup_email_taken_by_other_user(client, customer):
    response = await client.post(
        "/auth",
        json={"email": customer.email, "action": "signup"},
        headers=_bearer(uuid.uuid4()),
    )
    assert response.status_code == 409


async def test_signin_returns_stored_role(client, agent):
    response = await client.post(
        "/auth",
        json={"email": agent.email, "action": "signin"},
        headers=_bearer(agent.id, agent.email),
    )
    assert response.status_code == 200
    assert response.json()["role"] == "AGENT"


async def test_signin_without_row_is_404(client):
    response = await client.post(
        "/auth",
        json={"email": "ghost@test.com", "action": "signin"},
        headers=_bearer(uuid.uuid4()),
    )
    assert response.status_code == 404


@pytest.mark.parametrize("action", ["login", ""])
async def test_unknown_action_is_400(client, action):
    response = await client.post(
        "/auth",
        json={"email": "x@test.com", "action": action},
        headers=_bearer(uuid.uuid4()),
    )
    assert response.status_code == 400


async def test_auth_requires_token(client):
    response = await client.post("/auth", json={"email": "x@test.com", "action": "signin"})
    assert response.status_code == 401


# =============================================================================
# GET /auth/me
# =============================================================================

async def test_me_returns_profile(client, auth_headers, manager):
    response = await client.get("/auth/me", headers=auth_headers(manager))
    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == str(manager.id)
    assert data["role"] == "MANAGER"
    assert data["name"] == "Morgan Manager"
