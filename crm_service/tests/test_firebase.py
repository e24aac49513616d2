from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from firebase_admin import auth, exceptions

from app.core.firebase import AuthProviderError, FirebaseAuthProvider, _to_provider_user
from main import create_app


def user_record(**overrides):
    data = {
        "uid": "uid-1",
        "email": "owner@example.com",
        "display_name": "Owner",
        "email_verified": True,
        "photo_url": None,
        "disabled": False,
        "user_metadata": SimpleNamespace(last_sign_in_timestamp=1700000000000),
    }
    data.update(overrides)
    return SimpleNamespace(**data)


@pytest.fixture
def provider():
    return FirebaseAuthProvider(app=None)


# --- Token Verification ---
@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    ValueError("malformed"),
    auth.InvalidIdTokenError("bad signature"),
    auth.RevokedIdTokenError("revoked"),
    auth.UserNotFoundError("account deleted"),
    exceptions.UnavailableError("certificate fetch failed"),
])
async def test_every_verification_failure_is_invalid_token(provider, error):
    with patch("app.core.firebase.auth.verify_id_token", side_effect=error):
        with pytest.raises(AuthProviderError) as exc_info:
            await provider.verify_token("token")
    assert exc_info.value.code == AuthProviderError.INVALID_TOKEN


@pytest.mark.asyncio
async def test_anonymous_sign_in_is_rejected(provider):
    decoded = {"uid": "anon-1", "firebase": {"sign_in_provider": "anonymous"}}
    with patch("app.core.firebase.auth.verify_id_token", return_value=decoded):
        with pytest.raises(AuthProviderError) as exc_info:
            await provider.verify_token("token")
    assert exc_info.value.code == AuthProviderError.INVALID_TOKEN


@pytest.mark.asyncio
async def test_verified_identity(provider):
    decoded = {"uid": "uid-1", "email": "owner@example.com", "email_verified": True,
               "firebase": {"sign_in_provider": "password"}}
    with patch("app.core.firebase.auth.verify_id_token", return_value=decoded) as mock_verify:
        identity = await provider.verify_token("token")

    assert identity.subject_id == "uid-1"
    assert identity.email_verified is True
    # revocation is always checked
    assert mock_verify.call_args.args == ("token", None, True)


def test_deleted_account_token_is_generic_401(settings):
    client = TestClient(create_app(settings, auth_provider=FirebaseAuthProvider(app=None)), raise_server_exceptions=False)

    with patch("app.core.firebase.auth.verify_id_token", side_effect=auth.UserNotFoundError("gone")):
        response = client.get("/customers", headers={"Authorization": "Bearer stale-token"})

    assert response.status_code == 401
    assert response.json() == {"error": {"code": "UNAUTHORIZED", "message": "Authentication required"}}


# --- User Lookups ---
@pytest.mark.asyncio
async def test_get_user_maps_not_found(provider):
    with patch("app.core.firebase.auth.get_user", side_effect=auth.UserNotFoundError("missing")):
        with pytest.raises(AuthProviderError) as exc_info:
            await provider.get_user("uid-1")
    assert exc_info.value.code == AuthProviderError.USER_NOT_FOUND


@pytest.mark.asyncio
async def test_get_user_by_email_maps_outage(provider):
    with patch("app.core.firebase.auth.get_user_by_email", side_effect=exceptions.UnavailableError("down")):
        with pytest.raises(AuthProviderError) as exc_info:
            await provider.get_user_by_email("owner@example.com")
    assert exc_info.value.code == AuthProviderError.UNAVAILABLE


@pytest.mark.asyncio
async def test_create_user_with_taken_email(provider):
    taken = auth.EmailAlreadyExistsError("taken", None, None)
    with patch("app.core.firebase.auth.create_user", side_effect=taken):
        with pytest.raises(AuthProviderError) as exc_info:
            await provider.create_user("owner@example.com", "secret1")
    assert exc_info.value.code == AuthProviderError.EMAIL_EXISTS


@pytest.mark.asyncio
async def test_create_user_passes_display_name(provider):
    with patch("app.core.firebase.auth.create_user", return_value=user_record()) as mock_create:
        user = await provider.create_user("owner@example.com", "secret1", "Owner")

    assert user.uid == "uid-1"
    assert mock_create.call_args.kwargs["display_name"] == "Owner"
    assert mock_create.call_args.kwargs["email_verified"] is False


@pytest.mark.asyncio
async def test_custom_token_bytes_are_decoded(provider):
    with patch("app.core.firebase.auth.create_custom_token", return_value=b"signed.jwt.value"):
        assert await provider.create_custom_token("uid-1") == "signed.jwt.value"


def test_last_sign_in_is_converted_from_milliseconds():
    user = _to_provider_user(user_record())
    assert user.last_sign_in_time == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    never = _to_provider_user(user_record(user_metadata=SimpleNamespace(last_sign_in_timestamp=None)))
    assert never.last_sign_in_time is None
