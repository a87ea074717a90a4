"""
Fixtures for the HTTP API tests. The app runs in-process over an ASGI
transport, against the shared test database, with an in-memory hub and the
mock calendar and identity providers.
"""

import httpx
import pytest
import pytest_asyncio

from studygroup.api import dependencies
from studygroup.api.app import app
from studygroup.realtime.mock import MemoryHub
from studygroup.service.mock import MockCalendarProvider, MockIdentityProvider
from studygroup.service.provider import ExternalIdentity

PASSWORD = "correct horse battery"

GOOGLE_CREDENTIAL = "google-credential-for-api-tests"


@pytest.fixture(scope="session")
def hub():
    return MemoryHub()


@pytest.fixture(scope="session")
def calendar():
    return MockCalendarProvider()


@pytest.fixture(scope="session")
def identity_provider():
    return MockIdentityProvider(
        identities={
            GOOGLE_CREDENTIAL: ExternalIdentity(
                subject="google-sub-api-000001",
                email="api_google_user@example.com",
                first_name="Katherine",
                last_name="Johnson",
            )
        }
    )


@pytest_asyncio.fixture(scope="session")
async def client(
    server_settings, session_manager, keys, hub, calendar, identity_provider
):
    async def get_async_session():
        async with session_manager.session() as session:
            yield session

    app.dependency_overrides[dependencies.SETTINGS] = lambda: server_settings
    app.dependency_overrides[dependencies.get_async_session] = get_async_session
    app.dependency_overrides[dependencies.KEYS] = lambda: keys
    app.dependency_overrides[dependencies.get_hub] = lambda: hub
    app.dependency_overrides[dependencies.get_calendar] = lambda: calendar
    app.dependency_overrides[dependencies.get_identity_provider] = (
        lambda: identity_provider
    )

    transport = httpx.ASGITransport(app=app)

    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def register(client):
    """
    Factory that registers an account through the API and returns its
    `Authorization` headers along with the user data.
    """

    async def create(user_name: str, email: str | None = None):
        email = email or f"{user_name}@example.com"

        response = await client.post(
            "/api/auth/register",
            json={
                "first_name": user_name.title(),
                "last_name": "Tester",
                "user_name": user_name,
                "email": email,
                "password": PASSWORD,
            },
        )
        assert response.status_code == 201, response.json()

        response = await client.post(
            "/api/auth/login", json={"email": email, "password": PASSWORD}
        )
        assert response.status_code == 200, response.json()

        token = response.json()["data"]

        return (
            {"Authorization": f"Bearer {token['access_token']}"},
            token["user"],
        )

    return create


@pytest_asyncio.fixture(scope="session")
async def admin(register, server_settings):
    return await register("api_admin", email=server_settings.create_admin_users[0])
