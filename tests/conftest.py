"""
Core configuration

Tests run against a SQLite file by default. Set STUDYGROUP_TEST_POSTGRES=1 to
run them against PostgreSQL in a container instead (requires docker).
"""

import os

import pytest
import pytest_asyncio
import structlog
from testcontainers.postgres import PostgresContainer

from studygroup.config.settings import Settings
from studygroup.core.group import GroupStatus
from studygroup.service import groups as groups_service
from studygroup.service import user as user_service

ADMIN_EMAIL = "admin@example.com"


@pytest_asyncio.fixture(scope="session")
def database_container(tmp_path_factory):
    if os.environ.get("STUDYGROUP_TEST_POSTGRES") != "1":
        yield {
            "database_type": "sqlite",
            "database_db": str(tmp_path_factory.mktemp("database") / "test.db"),
        }
        return

    with PostgresContainer() as container:
        yield {
            "database_type": "postgres",
            "database_user": container.username,
            "database_password": container.password,
            "database_port": container.get_exposed_port(container.port),
            "database_host": "localhost",
            "database_db": container.dbname,
            "database_echo": True,
        }


@pytest_asyncio.fixture(scope="session")
def server_settings(database_container):
    yield Settings(
        **database_container,
        environment="development",
        calendar_provider="mock",
        create_admin_users=[ADMIN_EMAIL],
        google_client_id="test-client-id",
    )


@pytest_asyncio.fixture(scope="session")
def database(server_settings: Settings):
    server_settings.sync_manager().create_all()


@pytest_asyncio.fixture(scope="session")
def session_manager(server_settings: Settings, database):
    yield server_settings.async_manager()


@pytest_asyncio.fixture(scope="session")
def logger():
    yield structlog.get_logger()


@pytest.fixture(scope="session")
def keys(server_settings: Settings):
    return server_settings.signing_keys()


@pytest.fixture(scope="session")
def create_user(session_manager, logger):
    """
    Factory for users. User names must be unique across the test session;
    the email address is derived from the user name.
    """

    async def create(user_name: str, grants: str = "") -> int:
        async with session_manager.session() as conn:
            async with conn.begin():
                user = await user_service.create(
                    user_name=user_name,
                    email=f"{user_name}@example.com",
                    first_name=user_name.title(),
                    last_name="Tester",
                    password="correct horse battery",
                    grants=grants,
                    conn=conn,
                    log=logger,
                )
                return user.user_id

    return create


@pytest.fixture(scope="session")
def create_group(session_manager, logger):
    """
    Factory for groups, approved by default so that they can be joined.
    """

    async def create(
        group_name: str,
        created_by_user_id: int,
        capacity: int = 5,
        status: GroupStatus = GroupStatus.APPROVED,
    ) -> int:
        async with session_manager.session() as conn:
            async with conn.begin():
                group = await groups_service.create(
                    group_name=group_name,
                    capacity=capacity,
                    created_by_user_id=created_by_user_id,
                    conn=conn,
                    log=logger,
                )

                if status != GroupStatus.PENDING:
                    await groups_service.review(
                        group_id=group.group_id,
                        status=status,
                        remarks=None,
                        conn=conn,
                        log=logger,
                    )

                return group.group_id

    return create
