"""
FastAPI app, with the Socket.IO server mounted alongside it as `asgi`.
"""

from importlib.metadata import version

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from studygroup.core.models import Envelope, HealthResponse
from studygroup.realtime.events import register_handlers

from .admin import admin_routes
from .announcements import announcement_app
from .auth import auth_app
from .calendar import calendar_app, schedule_app
from .dependencies import (
    DATABASE_MANAGER,
    HUB,
    KEYS,
    SETTINGS,
    SIO,
    DatabaseDependency,
    HubDependency,
    logger,
)
from .docs import docs_routes
from .errors import add_exception_handlers
from .groups import group_app
from .messages import message_app

settings = SETTINGS()


async def lifespan(app: FastAPI):
    if settings.environment == "development":
        await DATABASE_MANAGER.create_all()

    await logger().ainfo(
        "api.startup",
        environment=settings.environment,
        database_type=settings.database_type,
        calendar_provider=settings.calendar_provider,
    )

    yield


# The built-in docs are replaced by the admin-only docs_routes
app = FastAPI(
    lifespan=lifespan,
    openapi_url=None,
    docs_url=None,
    redoc_url=None,
    title="Study Group API",
    summary="Study groups: membership, chat, announcements and scheduled sessions.",
    version=version("studygroup"),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app = add_exception_handlers(app, settings=settings)
app.include_router(docs_routes)
app.include_router(auth_app, prefix="/api/auth")
app.include_router(group_app, prefix="/api/group")
app.include_router(admin_routes, prefix="/api/admin")
app.include_router(message_app, prefix="/api/messages")
app.include_router(announcement_app, prefix="/api/announcements")
app.include_router(calendar_app, prefix="/api/calendar")
app.include_router(schedule_app, prefix="/api/schedules")


@app.get("/health", tags=["Health"], summary="Service health")
async def health(
    conn: DatabaseDependency, hub: HubDependency
) -> Envelope[HealthResponse]:
    try:
        await conn.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        database = "unreachable"

    return Envelope(
        success=database == "ok",
        data=HealthResponse(database=database, socket_connections=hub.connection_count),
    )


register_handlers(sio=SIO, hub=HUB, manager=DATABASE_MANAGER, keys=KEYS())

asgi = socketio.ASGIApp(SIO, other_asgi_app=app, socketio_path="socket.io")
