"""
A simple CLI for running the server.
"""

import asyncio
import os
import sys

import uvicorn

USAGE = (
    "Only supported commands are studygroup run dev, studygroup run prod, "
    "or studygroup setup"
)


def run_server(reload: bool = False, **kwargs):
    for k, v in kwargs.items():
        os.environ[k] = v

    uvicorn.run("studygroup.api.app:asgi", host="0.0.0.0", port=8000, reload=reload)


async def initial_setup():
    """
    Create the tables, and give the configured initial administrators their
    grant if they have already registered.
    """
    from structlog import get_logger

    from studygroup.config.settings import Settings
    from studygroup.service import user as user_service

    settings = Settings()
    log = get_logger()
    manager = settings.async_manager()

    await manager.create_all()

    async with manager.session() as conn:
        async with conn.begin():
            for email in settings.create_admin_users:
                try:
                    user = await user_service.read_by_email(email=email, conn=conn)
                except user_service.UserNotFound:
                    await log.ainfo("setup.admin.not_registered", email=email)
                    continue

                await user_service.add_grant(
                    user_id=user.user_id, grant="admin", conn=conn, log=log
                )

    await manager.engine.dispose()


def main():
    try:
        run = sys.argv[1] == "run"
        setup = sys.argv[1] == "setup"
        dev = run and sys.argv[2] == "dev"
        prod = run and sys.argv[2] == "prod"
    except IndexError:
        print(USAGE)
        exit(1)

    if dev:
        environment = {
            "STUDYGROUP_ENVIRONMENT": "development",
            "STUDYGROUP_DATABASE_TYPE": os.environ.get(
                "STUDYGROUP_DATABASE_TYPE", "sqlite"
            ),
            "STUDYGROUP_CALENDAR_PROVIDER": os.environ.get(
                "STUDYGROUP_CALENDAR_PROVIDER", "mock"
            ),
        }
        run_server(reload=True, **environment)
        return

    if prod:
        asyncio.run(initial_setup())
        run_server(STUDYGROUP_ENVIRONMENT="production")
        return

    if setup:
        asyncio.run(initial_setup())
        print("Setup complete, please restart the container or application")
        exit(0)

    print(USAGE)
    exit(1)
