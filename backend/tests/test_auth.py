"""Tests for sign-up, sign-in and sessions."""

import pytest

from locl_api.auth.jwt_handler import REFRESH, create_refresh_token, verify_token
from locl_api.auth.security import hash_password, verify_password
from locl_api.core.exceptions import AuthenticationError

from conftest import PASSWORD


def sign_up(client, email="new@example.com", password=PASSWORD, full_name="New Person"):
    return client.post("/api/auth/signup", json={"email": email, "password": password, "full_name": full_name})


def test_password_hashing():
    hashed = hash_password("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)


def test_signup_then_session(client):
    response = sign_up(client)
    assert response.status_code == 201
    tokens = response.json()

    session = client.get("/api/auth/session", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert session.status_code == 200
    body = session.json()
    assert body["email"] == "new@example.com"
    assert body["display_name"] == "New Person"
    assert body["is_onboarded"] is False


def test_duplicate_email_rejected(client):
    sign_up(client)
    response = sign_up(client, email="NEW@example.com")
    assert response.status_code == 400


def test_short_password_rejected(client):
    assert sign_up(client, password="short").status_code == 422


def test_signin(client, buyer):
    ok = client.post("/api/auth/signin", json={"email": buyer.email, "password": PASSWORD})
    assert ok.status_code == 200
    assert ok.json()["user_id"] == buyer.id

    bad = client.post("/api/auth/signin", json={"email": buyer.email, "password": "nope-nope"})
    assert bad.status_code == 401
    assert bad.json()["detail"] == "Incorrect email or password"


def test_signout_revokes_token(client, buyer):
    token = client.post("/api/auth/signin", json={"email": buyer.email, "password": PASSWORD}).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    assert client.post("/api/auth/signout", headers=headers).status_code == 200
    assert client.get("/api/auth/session", headers=headers).status_code == 401


def test_refresh_rotates_tokens(client, buyer):
    refresh_token = create_refresh_token(buyer.id)

    response = client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 200
    assert response.json()["user_id"] == buyer.id

    again = client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert again.status_code == 401


def test_refresh_token_is_not_an_access_token(buyer):
    token = create_refresh_token(buyer.id)
    with pytest.raises(AuthenticationError):
        verify_token(token)
    assert verify_token(token, expected_type=REFRESH).user_id == buyer.id


def test_missing_or_garbage_token(client):
    assert client.get("/api/auth/session").status_code == 401
    assert client.get("/api/auth/session", headers={"Authorization": "Bearer garbage"}).status_code == 401
