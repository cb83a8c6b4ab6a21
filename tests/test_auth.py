import pytest
from fastapi import HTTPException

from coursepath.routes import auth_routes
from coursepath.schemas.user_schema import TokenData


def _token_for(uid, email, name=None):
    def _verify(id_token):
        if id_token != "valid-token":
            raise HTTPException(status_code=401, detail="Invalid or expired authentication token.")
        return TokenData(firebase_uid=uid, email=email, name=name)
    return _verify


def test_register_creates_learner(client, monkeypatch):
    monkeypatch.setattr(auth_routes, "verify_firebase_id_token", _token_for("fb-1", "ada@example.com", "Ada"))

    r = client.post("/api/v1/auth/register", json={"firebase_id_token": "valid-token"})
    assert r.status_code == 201
    user = r.json()["user"]
    assert user["email"] == "ada@example.com"
    assert user["display_name"] == "Ada"
    assert user["role"] == "Learner"


def test_register_twice_conflicts(client, monkeypatch):
    monkeypatch.setattr(auth_routes, "verify_firebase_id_token", _token_for("fb-2", "grace@example.com"))

    assert client.post("/api/v1/auth/register", json={"firebase_id_token": "valid-token"}).status_code == 201
    r = client.post("/api/v1/auth/register", json={"firebase_id_token": "valid-token", "display_name": "Grace"})
    assert r.status_code == 409


def test_register_with_bad_token(client, monkeypatch):
    monkeypatch.setattr(auth_routes, "verify_firebase_id_token", _token_for("fb-3", "x@example.com"))

    r = client.post("/api/v1/auth/register", json={"firebase_id_token": "forged"})
    assert r.status_code == 401


def test_me_returns_profile(client, auth, learner):
    auth.user_id = learner.id

    r = client.get("/api/v1/auth/me")
    assert r.status_code == 200
    assert r.json()["id"] == learner.id
    assert r.json()["email"] == learner.email


def test_service_account_cannot_call_api(client, auth, make_user):
    auth.user_id = make_user(role="Service", name="service").id
    assert client.get("/api/v1/auth/me").status_code == 403


def test_root_endpoint(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "CoursePath" in r.json()["message"]


def test_token_verification_maps_firebase_errors(monkeypatch):
    from firebase_admin.auth import ExpiredIdTokenError
    from coursepath.core import security

    def _expired(id_token, check_revoked=False):
        raise ExpiredIdTokenError("Token expired", cause=None)

    monkeypatch.setattr(security, "get_firebase_app", lambda: None)
    monkeypatch.setattr(security.auth, "verify_id_token", _expired)

    with pytest.raises(HTTPException) as exc_info:
        security.verify_firebase_id_token("stale-token")
    assert exc_info.value.status_code == 401
    assert "expired" in exc_info.value.detail


def test_token_without_email_is_rejected(monkeypatch):
    from coursepath.core import security

    monkeypatch.setattr(security, "get_firebase_app", lambda: None)
    monkeypatch.setattr(security.auth, "verify_id_token", lambda id_token, check_revoked=False: {"uid": "fb-9"})

    with pytest.raises(HTTPException) as exc_info:
        security.verify_firebase_id_token("token")
    assert exc_info.value.status_code == 401


def test_token_claims_become_token_data(monkeypatch):
    from coursepath.core import security

    claims = {"uid": "fb-10", "email": "lin@example.com", "name": "Lin"}
    monkeypatch.setattr(security, "get_firebase_app", lambda: None)
    monkeypatch.setattr(security.auth, "verify_id_token", lambda id_token, check_revoked=False: claims)

    token_data = security.verify_firebase_id_token("token")
    assert token_data.firebase_uid == "fb-10"
    assert token_data.name == "Lin"
