"""Auth: signup, login, bearer token checks, profile."""
import uuid
from datetime import timedelta

from fastapi.testclient import TestClient

from app.core.security import create_access_token


def _email() -> str:
    return f"auth-{uuid.uuid4().hex[:10]}@example.com"


def test_signup_success(client: TestClient):
    email = _email()
    r = client.post(
        "/auth/signup",
        json={"displayName": "New User", "email": email, "password": "secure123", "role": "researcher"},
    )
    assert r.status_code == 201
    j = r.json()
    assert j["email"] == email
    assert j["message"] == "User created successfully"
    assert j["uid"]


def test_signup_missing_fields(client: TestClient):
    r = client.post("/auth/signup", json={"email": _email(), "password": "secure123"})
    assert r.status_code == 400
    assert r.json()["message"].startswith("Missing required fields")


def test_signup_validation(client: TestClient):
    r = client.post(
        "/auth/signup",
        json={"displayName": "X", "email": "bad", "password": "secure123", "role": "researcher"},
    )
    assert r.status_code == 400
    r = client.post(
        "/auth/signup",
        json={"displayName": "X", "email": _email(), "password": "123", "role": "researcher"},
    )
    assert r.status_code == 400
    assert "6 characters" in r.json()["message"]


def test_signup_duplicate_email(client: TestClient):
    body = {"displayName": "Dup", "email": _email(), "password": "secure123", "role": "investor"}
    assert client.post("/auth/signup", json=body).status_code == 201
    r = client.post("/auth/signup", json=body)
    assert r.status_code == 400
    assert "already in use" in r.json()["message"]


def test_login_success(client: TestClient, make_user):
    user = make_user()
    r = client.post("/auth/login", json={"email": user["email"], "password": "secret123"})
    assert r.status_code == 200
    j = r.json()
    assert j["token_type"] == "bearer"
    assert j["uid"] == user["uid"]
    assert "access_token" in j


def test_login_wrong_password(client: TestClient, make_user):
    user = make_user()
    r = client.post("/auth/login", json={"email": user["email"], "password": "wrongpass"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid email or password."


def test_profile_requires_auth(client: TestClient):
    r = client.get("/api/my-profile")
    assert r.status_code == 401
    assert r.json()["message"] == "Unauthorized: No token provided or malformed token."


def test_invalid_token_is_403(client: TestClient):
    r = client.get("/api/my-profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 403
    assert r.json()["message"] == "Unauthorized: Invalid token."


def test_expired_token_is_401(client: TestClient, make_user):
    user = make_user()
    token = create_access_token({"sub": user["uid"]}, expires_delta=timedelta(seconds=-10))
    r = client.get("/api/my-profile", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["message"] == "Unauthorized: Token expired."


def test_profile_with_token(client: TestClient, make_user):
    user = make_user()
    r = client.get("/api/my-profile", headers=user["headers"])
    assert r.status_code == 200
    profile = r.json()["userProfile"]
    assert profile["email"] == user["email"]
    assert profile["displayName"] == "Test User"
    assert profile["role"] == "researcher"
    assert profile["authProvider"] == "password"
