"""
Tests the administration endpoints.
"""

import pytest


@pytest.mark.asyncio(loop_scope="session")
async def test_admin_only(client, register):
    headers, _ = await register("api_not_admin")

    for path in (
        "/api/admin/users",
        "/api/admin/activities",
        "/api/admin/dashboard",
        "/api/group/all",
    ):
        response = await client.get(path, headers=headers)
        assert response.status_code == 403, path
        assert response.json()["success"] is False


@pytest.mark.asyncio(loop_scope="session")
async def test_manage_users(client, register, admin):
    admin_headers, _ = admin
    headers, user = await register("api_managed_user")
    user_id = user["user_id"]

    response = await client.get("/api/admin/users", headers=admin_headers)
    assert user_id in [u["user_id"] for u in response.json()["data"]]

    response = await client.post(
        f"/api/admin/users/{user_id}/toggle-admin", headers=admin_headers
    )
    assert response.status_code == 200
    assert "admin" in response.json()["data"]["grants"]

    response = await client.post(
        f"/api/admin/users/{user_id}/toggle-admin", headers=admin_headers
    )
    assert "admin" not in (response.json()["data"]["grants"] or [])

    # Active users are suspended before they can be deleted.
    response = await client.delete(f"/api/admin/users/{user_id}", headers=admin_headers)
    assert response.status_code == 400

    response = await client.post(
        f"/api/admin/users/{user_id}/status",
        headers=admin_headers,
        json={"status": "suspended"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "suspended"

    response = await client.post(
        "/api/auth/login",
        json={
            "email": "api_managed_user@example.com",
            "password": "correct horse battery",
        },
    )
    assert response.status_code == 403

    response = await client.delete(f"/api/admin/users/{user_id}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.delete(f"/api/admin/users/{user_id}", headers=admin_headers)
    assert response.status_code == 404

    response = await client.get("/api/admin/activities", headers=admin_headers)
    actions = [a["action"] for a in response.json()["data"]]
    assert actions[0] == "deleted user"
    assert "set status suspended" in actions


@pytest.mark.asyncio(loop_scope="session")
async def test_dashboard(client, register, admin, hub):
    admin_headers, _ = admin
    await register("api_dashboard_user")
    await hub.connected("dashboard-socket")

    response = await client.get("/api/admin/dashboard", headers=admin_headers)
    data = response.json()["data"]

    assert response.status_code == 200
    assert data["total_users"] >= 2
    assert data["socket_connections"] >= 1
    assert set(data) == {
        "total_users",
        "approved_groups",
        "pending_groups",
        "socket_connections",
    }

    await hub.disconnected("dashboard-socket")


@pytest.mark.asyncio(loop_scope="session")
async def test_docs_are_admin_only(client, register, admin):
    headers, _ = await register("api_docs_reader")

    response = await client.get("/openapi.json", headers=headers)
    assert response.status_code == 403

    response = await client.get("/openapi.json", headers=admin[0])
    assert response.status_code == 200
    assert "/api/group/join" in response.json()["paths"]

    response = await client.get("/docs", headers=admin[0])
    assert response.status_code == 200
