"""
Tests registration, login and the response envelope.
"""

from datetime import timedelta

import pytest

from studygroup.core.tokens import build_access_token_payload, sign_payload


@pytest.mark.asyncio(loop_scope="session")
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["success"]
    assert response.json()["data"]["database"] == "ok"


@pytest.mark.asyncio(loop_scope="session")
async def test_register_and_login(client, register):
    headers, user = await register("api_auth_user")

    assert user["user_name"] == "api_auth_user"
    assert not user["grants"]

    response = await client.get("/api/auth/me", headers=headers)
    body = response.json()

    assert response.status_code == 200
    assert set(body) == {"success", "message", "data", "trace"}
    assert body["success"]
    assert body["data"]["email"] == "api_auth_user@example.com"
    assert body["data"]["status"] == "active"

    response = await client.put(
        "/api/auth/me", headers=headers, json={"bio": "Topology enthusiast"}
    )
    assert response.status_code == 200
    assert response.json()["data"]["bio"] == "Topology enthusiast"
    assert response.json()["data"]["first_name"] == "Api_Auth_User"


@pytest.mark.asyncio(loop_scope="session")
async def test_register_conflicts(client, register):
    await register("api_taken_user")

    response = await client.post(
        "/api/auth/register",
        json={
            "first_name": "Taken",
            "last_name": "Again",
            "user_name": "someone_new",
            "email": "api_taken_user@example.com",
            "password": "long enough password",
        },
    )

    assert response.status_code == 409
    assert not response.json()["success"]
    assert response.json()["message"]


@pytest.mark.asyncio(loop_scope="session")
async def test_validation_errors_use_envelope(client):
    response = await client.post(
        "/api/auth/register",
        json={"first_name": "No", "user_name": "incomplete", "email": "not-an-email"},
    )
    body = response.json()

    assert response.status_code == 422
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert isinstance(body["data"], list)
    assert body["data"]


@pytest.mark.asyncio(loop_scope="session")
async def test_bad_credentials(client, register):
    await register("api_wrong_password")

    response = await client.post(
        "/api/auth/login",
        json={"email": "api_wrong_password@example.com", "password": "not it at all"},
    )

    assert response.status_code == 401
    assert not response.json()["success"]


@pytest.mark.asyncio(loop_scope="session")
@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Basic dXNlcjpwYXNz"},
        {"Authorization": "Bearer not-a-token"},
    ],
    ids=["missing", "wrong-scheme", "forged"],
)
async def test_protected_routes_need_token(client, headers):
    response = await client.get("/api/group/list", headers=headers)

    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.asyncio(loop_scope="session")
async def test_admin_email_gets_admin(client, admin):
    headers, user = admin

    assert "admin" in user["grants"]

    response = await client.get("/api/admin/dashboard", headers=headers)
    assert response.status_code == 200


@pytest.mark.asyncio(loop_scope="session")
async def test_google_login(client):
    response = await client.post(
        "/api/auth/google", json={"credential": "google-credential-for-api-tests"}
    )
    body = response.json()

    assert response.status_code == 200
    assert body["data"]["user"]["email"] == "api_google_user@example.com"
    assert body["data"]["access_token"]

    response = await client.post("/api/auth/google", json={"credential": "forged"})

    assert response.status_code == 401
    assert not response.json()["success"]


@pytest.mark.asyncio(loop_scope="session")
async def test_token_for_suspended_account(client, register, keys):
    _, user = await register("api_suspended_claims")

    payload, _ = build_access_token_payload(
        user_data={**user, "status": "suspended"}, validity=timedelta(minutes=5)
    )
    access_token = sign_payload(keys=keys, payload=payload)

    response = await client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {access_token}"}
    )

    assert response.status_code == 403
    assert response.json()["message"] == "Your account is suspended"
