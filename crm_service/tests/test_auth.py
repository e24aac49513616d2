from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
import structlog

from app.api.deps import get_current_subject
from conftest import AUTH_HEADERS, SUBJECT_ID, timestamps

UNAUTHORIZED_BODY = {"error": {"code": "UNAUTHORIZED", "message": "Authentication required"}}


def user_row(subject_id=SUBJECT_ID, email="owner@example.com"):
    return SimpleNamespace(
        id=subject_id, email=email, display_name="Owner", email_verified=True,
        photo_url=None, disabled=False, last_sign_in_time=None, **timestamps(),
    )


# --- Token Verification ---
def test_missing_authorization_header(client, db_session):
    response = client.get("/customers")
    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED_BODY
    db_session.execute.assert_not_called()


def test_non_bearer_scheme_is_rejected(client):
    response = client.get("/customers", headers={"Authorization": "Basic abc"})
    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED_BODY


def test_rejected_token_gets_the_same_body(client):
    response = client.get("/customers", headers={"Authorization": "Bearer expired-or-forged"})
    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED_BODY


def test_auth_runs_before_identifier_check(client):
    response = client.get("/customers/not-a-uuid")
    assert response.status_code == 401


# --- Signup ---
def test_signup_creates_identity_and_mirror(client, db_session, auth_provider):
    with patch("app.services.auth.upsert_user", new_callable=AsyncMock) as mock_upsert:
        response = client.post("/auth/signup", json={
            "email": "New@Example.com", "password": "secret1", "displayName": "New User",
        })

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User created successfully"
    assert body["token"] == f"custom-token-{body['userId']}"

    created = auth_provider.users[body["userId"]]
    assert created.email == "new@example.com"
    mock_upsert.assert_awaited_once()
    db_session.commit.assert_awaited_once()


def test_signup_with_existing_email_conflicts(client):
    response = client.post("/auth/signup", json={"email": "owner@example.com", "password": "secret1"})
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "EMAIL_ALREADY_EXISTS"


def test_signup_local_failure_leaves_identity_orphaned(client, db_session, auth_provider):
    db_session.commit.side_effect = RuntimeError("connection lost")

    with patch("app.services.auth.upsert_user", new_callable=AsyncMock), \
         patch("app.services.auth.logger") as mock_logger:
        response = client.post("/auth/signup", json={"email": "late@example.com", "password": "secret1"})

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "INTERNAL_SERVER_ERROR"
    assert "connection lost" not in response.text
    db_session.rollback.assert_awaited_once()

    events = [c.args[0] for c in mock_logger.error.call_args_list]
    assert "signup_orphaned_identity" in events
    # the provider account exists even though the request failed
    assert any(u.email == "late@example.com" for u in auth_provider.users.values())


def test_signup_validation_errors(client):
    response = client.post("/auth/signup", json={"email": "bad", "password": "123"})
    assert response.status_code == 400
    fields = {d["field"] for d in response.json()["error"]["details"]}
    assert fields == {"email", "password"}


# --- Login ---
def test_login_returns_custom_token(client, db_session):
    with patch("app.services.auth.sync_user_from_provider", new_callable=AsyncMock) as mock_sync:
        response = client.post("/auth/login", json={"email": "owner@example.com", "password": "whatever"})

    assert response.status_code == 200
    assert response.json() == {"userId": SUBJECT_ID, "token": f"custom-token-{SUBJECT_ID}"}
    mock_sync.assert_awaited_once()
    db_session.commit.assert_awaited_once()


def test_login_unknown_email(client):
    response = client.post("/auth/login", json={"email": "ghost@example.com", "password": "secret1"})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "USER_NOT_FOUND"


# --- Profile ---
def test_me_returns_local_profile(client):
    with patch("app.services.auth.ensure_user_exists", new_callable=AsyncMock, return_value=user_row()):
        response = client.get("/auth/me", headers=AUTH_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == SUBJECT_ID
    assert body["displayName"] == "Owner"
    assert body["emailVerified"] is True
    assert "photoURL" in body


@pytest.mark.asyncio
async def test_subject_is_bound_to_log_context(auth_provider):
    structlog.contextvars.clear_contextvars()
    request = SimpleNamespace(headers=AUTH_HEADERS)

    assert await get_current_subject(request, auth_provider) == SUBJECT_ID
    assert structlog.contextvars.get_contextvars()["subject_id"] == SUBJECT_ID
    structlog.contextvars.clear_contextvars()
