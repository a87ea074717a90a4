"""
Group announcements.
"""

from fastapi import APIRouter

from studygroup.core.content import AnnouncementData
from studygroup.core.models import AnnouncementCreationRequest, Envelope
from studygroup.realtime.hub import room_for_group
from studygroup.service import announcements as announcements_service
from studygroup.service import groups as groups_service

from .dependencies import (
    AuthenticatedUser,
    DatabaseDependency,
    HubDependency,
    LoggerDependency,
)

announcement_app = APIRouter(tags=["Announcements"])


@announcement_app.get(
    "/group/{group_id}",
    summary="Read a group's announcements",
    description="Announcements of the group, newest first, with author names.",
    responses={
        200: {"description": "List of announcements."},
        403: {"description": "Not a member of the group."},
        404: {"description": "Group not found."},
    },
)
async def list_announcements(
    group_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[list[AnnouncementData]]:
    async with conn.begin():
        await groups_service.require_access(
            group_id=group_id, user=user, conn=conn, log=log
        )
        announcements = await announcements_service.list_for_group(
            group_id=group_id, conn=conn, log=log
        )
        data = [a.to_core() for a in announcements]

    return Envelope(data=data)


@announcement_app.post(
    "/group/{group_id}",
    status_code=201,
    summary="Post an announcement",
    description=(
        "Post an announcement to the group and broadcast `newAnnouncement` to "
        "everyone in its room, the author included."
    ),
    responses={
        201: {"description": "The stored announcement."},
        403: {"description": "Not a member of the group."},
        404: {"description": "Group not found."},
    },
)
async def create_announcement(
    group_id: int,
    content: AnnouncementCreationRequest,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
    hub: HubDependency,
) -> Envelope[AnnouncementData]:
    log = log.bind(group_id=group_id, user_id=user.user_id)

    async with conn.begin():
        await groups_service.require_access(
            group_id=group_id, user=user, conn=conn, log=log
        )
        announcement = await announcements_service.create(
            group_id=group_id,
            author_id=user.user_id,
            title=content.title,
            body=content.body,
            conn=conn,
            log=log,
        )
        data = announcement.to_core()

    await hub.broadcast(
        room=room_for_group(group_id),
        event="newAnnouncement",
        payload=data.model_dump(mode="json"),
    )

    return Envelope(message="Announcement posted", data=data)
