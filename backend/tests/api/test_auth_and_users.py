import pytest
from sqlalchemy import select

from clinic_feedback.core.security import InvalidToken, TokenClaims, issue_token, read_token
from clinic_feedback.models.audit_log import AuditLog

PASSWORD = "secret123"


def test_login_returns_token(client, operator):
    response = client.post("/auth/login", json={"login": "OPERATOR", "password": PASSWORD})
    assert response.status_code == 200, response.text
    token = response.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["login"] == "operator"


def test_login_rejects_bad_password(client, operator):
    response = client.post("/auth/login", json={"login": "operator", "password": "nope"})
    assert response.status_code == 401


def test_endpoints_require_token(client):
    assert client.get("/patients").status_code == 401
    assert client.get("/patients", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_admin_manages_users(client, db, admin_headers):
    created = client.post(
        "/users",
        json={"login": "nurse01", "password": "secret12", "full_name": "Nurse", "role": "user"},
        headers=admin_headers,
    )
    assert created.status_code == 201, created.text
    user_id = created.json()["id"]

    duplicate = client.post(
        "/users", json={"login": "nurse01", "password": "secret12"}, headers=admin_headers
    )
    assert duplicate.status_code == 400

    listed = client.get("/users", headers=admin_headers).json()
    assert "nurse01" in [user["login"] for user in listed]

    deleted = client.delete(f"/users/{user_id}", headers=admin_headers)
    assert deleted.status_code == 204
    actions = [entry.action for entry in db.scalars(select(AuditLog).order_by(AuditLog.id))]
    assert actions == ["user.created", "user.deleted"]


def test_user_payload_validation(client, admin_headers):
    response = client.post("/users", json={"login": "abc", "password": "secret12"}, headers=admin_headers)
    assert response.status_code == 422


def test_operators_cannot_manage_users(client, operator_headers):
    assert client.get("/users", headers=operator_headers).status_code == 403


def test_token_claims_round_trip():
    token = issue_token(
        TokenClaims(user_id=7, login="operator", role="user"),
        secret="s" * 32,
        alg="HS256",
        expires_minutes=5,
    )
    claims = read_token(token, secret="s" * 32, alg="HS256")
    assert claims == TokenClaims(user_id=7, login="operator", role="user")


def test_expired_or_foreign_tokens_are_rejected():
    expired = issue_token(TokenClaims(user_id=1), secret="k" * 32, alg="HS256", expires_minutes=-1)
    with pytest.raises(InvalidToken):
        read_token(expired, secret="k" * 32, alg="HS256")

    foreign = issue_token(TokenClaims(user_id=1), secret="other" * 8, alg="HS256", expires_minutes=5)
    with pytest.raises(InvalidToken):
        read_token(foreign, secret="k" * 32, alg="HS256")
