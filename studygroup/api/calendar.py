"""
Study session schedules and meeting links.
"""

from fastapi import APIRouter
from pydantic import BaseModel

from studygroup.core.content import ScheduleData
from studygroup.core.errors import ForbiddenError
from studygroup.core.models import Envelope, MeetLinkResponse, ScheduleCreationRequest
from studygroup.realtime.hub import room_for_group
from studygroup.service import groups as groups_service
from studygroup.service import schedules as schedules_service

from .dependencies import (
    AuthenticatedUser,
    CalendarDependency,
    DatabaseDependency,
    HubDependency,
    LoggerDependency,
    SocketIdDependency,
)

calendar_app = APIRouter(tags=["Calendar"])
schedule_app = APIRouter(tags=["Calendar"])


@calendar_app.get(
    "/group/{group_id}",
    summary="List a group's schedules",
    description="Schedules of the group, soonest first.",
    responses={
        200: {"description": "List of schedules."},
        403: {"description": "Not a member of the group."},
        404: {"description": "Group not found."},
    },
)
async def list_group_schedules(
    group_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[list[ScheduleData]]:
    async with conn.begin():
        await groups_service.require_access(
            group_id=group_id, user=user, conn=conn, log=log
        )
        schedules = await schedules_service.list_for_group(
            group_id=group_id, conn=conn, log=log
        )
        data = [s.to_core() for s in schedules]

    return Envelope(data=data)


@calendar_app.post(
    "/group/{group_id}",
    status_code=201,
    summary="Schedule a session",
    description=(
        "Create a schedule, mirrored to the external calendar when one is "
        "configured. Online sessions get a meeting link. If the calendar fails "
        "the schedule is still created, without a link. `new_schedule` is "
        "broadcast to the group room, leaving out the `X-Socket-Id` connection."
    ),
    responses={
        201: {"description": "The stored schedule."},
        403: {"description": "Not a member of the group."},
        404: {"description": "Group not found."},
        422: {"description": "Missing fields, or start not before end."},
    },
)
async def create_schedule(
    group_id: int,
    content: ScheduleCreationRequest,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
    hub: HubDependency,
    calendar: CalendarDependency,
    socket_id: SocketIdDependency = None,
) -> Envelope[ScheduleData]:
    log = log.bind(group_id=group_id, user_id=user.user_id)

    async with conn.begin():
        await groups_service.require_access(
            group_id=group_id, user=user, conn=conn, log=log
        )
        schedule = await schedules_service.create(
            group_id=group_id,
            created_by_user_id=user.user_id,
            calendar=calendar,
            conn=conn,
            log=log,
            **content.model_dump(),
        )
        data = schedule.to_core()

    await hub.broadcast(
        room=room_for_group(group_id),
        event="new_schedule",
        payload=data.model_dump(mode="json"),
        skip=socket_id,
    )

    return Envelope(message="Schedule created", data=data)


class MeetLinkRequest(BaseModel):
    title: str = "Study session"


@calendar_app.post(
    "/meet-link",
    summary="Generate a meeting link",
    description=(
        "Create a 30 minute online event starting now and return its meeting "
        "link. Nothing is stored."
    ),
    responses={
        200: {"description": "The meeting link."},
        503: {"description": "The calendar could not provide a link."},
    },
)
async def meet_link(
    user: AuthenticatedUser,
    log: LoggerDependency,
    calendar: CalendarDependency,
    content: MeetLinkRequest | None = None,
) -> Envelope[MeetLinkResponse]:
    link = await schedules_service.generate_meet_link(
        title=(content or MeetLinkRequest()).title,
        calendar=calendar,
        log=log.bind(user_id=user.user_id),
    )

    return Envelope(data=MeetLinkResponse(meeting_link=link))


@schedule_app.get(
    "/user/{user_id}",
    summary="List a user's schedules",
    description=(
        "Schedules across every group the user created or is a member of, "
        "soonest first. Users may only list their own unless they are admins."
    ),
    responses={
        200: {"description": "List of schedules."},
        403: {"description": "Not your schedules."},
    },
)
async def list_user_schedules(
    user_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[list[ScheduleData]]:
    if user_id != user.user_id and not user.is_admin:
        raise ForbiddenError("You can only list your own schedules")

    async with conn.begin():
        schedules = await schedules_service.list_for_user(
            user_id=user_id, conn=conn, log=log
        )
        data = [s.to_core() for s in schedules]

    return Envelope(data=data)
