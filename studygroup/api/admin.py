"""
Administration endpoints.
"""

from fastapi import APIRouter

from studygroup.core.content import ActivityData
from studygroup.core.group import GroupData, GroupStatus
from studygroup.core.models import (
    DashboardResponse,
    Envelope,
    GroupReviewRequest,
    UserStatusRequest,
)
from studygroup.core.user import UserProfileData
from studygroup.realtime.events import notify
from studygroup.realtime.hub import room_for_user
from studygroup.service import activity as activity_service
from studygroup.service import groups as groups_service
from studygroup.service import user as user_service

from .dependencies import AdminUser, DatabaseDependency, HubDependency, LoggerDependency

admin_routes = APIRouter(tags=["Administration"])


@admin_routes.post(
    "/groups/{group_id}/status",
    summary="Approve or reject a group",
    description=(
        "Set a group's status to `approved` or `rejected`, with optional remarks "
        "for the creator. Requires `admin` grant."
    ),
    responses={
        200: {"description": "The reviewed group."},
        403: {"description": "Not an administrator."},
        404: {"description": "Group not found."},
        422: {"description": "The status was not approved or rejected."},
    },
)
async def review_group(
    group_id: int,
    content: GroupReviewRequest,
    admin_user: AdminUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
    hub: HubDependency,
) -> Envelope[GroupData]:
    log = log.bind(admin_user=admin_user.user_id)

    async with conn.begin():
        group = await groups_service.review(
            group_id=group_id,
            status=content.status,
            remarks=content.remarks,
            conn=conn,
            log=log,
        )
        await activity_service.record(
            user_id=admin_user.user_id,
            action=f"{content.status.value} group",
            target=group.group_name,
            conn=conn,
            log=log,
        )
        data = group.to_core()

    verdict = "approved" if data.status == GroupStatus.APPROVED else "rejected"

    await notify(
        hub,
        room_for_user(data.created_by_user_id),
        kind=f"group_{verdict}",
        message=f"Your group {data.group_name} was {verdict}",
        group_id=data.group_id,
        remarks=data.remarks,
    )

    return Envelope(message=f"Group {verdict}", data=data)


@admin_routes.get(
    "/users",
    summary="Get the list of users",
    description="Retrieve a list of all users in the system. Requires `admin` grant.",
    responses={
        200: {"description": "A list of users is returned."},
        403: {"description": "Not an administrator."},
    },
)
async def users(
    admin_user: AdminUser, conn: DatabaseDependency, log: LoggerDependency
) -> Envelope[list[UserProfileData]]:
    log = log.bind(admin_user=admin_user.user_id)

    async with conn.begin():
        result = await user_service.get_user_list(conn=conn)

    log = log.bind(number_of_users=len(result))
    await log.ainfo("api.admin.users")

    return Envelope(data=result)


@admin_routes.post(
    "/users/{user_id}/toggle-admin",
    summary="Toggle the admin role",
    description=(
        "Give a user the `admin` grant, or take it away if they have it. Takes "
        "effect at their next login. Requires `admin` grant."
    ),
    responses={
        200: {"description": "The updated user."},
        404: {"description": "User not found."},
    },
)
async def toggle_admin(
    user_id: int,
    admin_user: AdminUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[UserProfileData]:
    log = log.bind(admin_user=admin_user.user_id)

    async with conn.begin():
        user = await user_service.toggle_admin(user_id=user_id, conn=conn, log=log)
        promoted = user.has_grant("admin")
        await activity_service.record(
            user_id=admin_user.user_id,
            action="granted admin" if promoted else "revoked admin",
            target=user.user_name,
            conn=conn,
            log=log,
        )
        data = user.to_profile()

    return Envelope(message="User role updated", data=data)


@admin_routes.post(
    "/users/{user_id}/status",
    summary="Suspend or reactivate a user",
    description=(
        "Suspended users cannot log in or open real-time connections. Requires "
        "`admin` grant."
    ),
    responses={
        200: {"description": "The updated user."},
        404: {"description": "User not found."},
    },
)
async def set_user_status(
    user_id: int,
    content: UserStatusRequest,
    admin_user: AdminUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[UserProfileData]:
    log = log.bind(admin_user=admin_user.user_id)

    async with conn.begin():
        user = await user_service.set_status(
            user_id=user_id, status=content.status, conn=conn, log=log
        )
        await activity_service.record(
            user_id=admin_user.user_id,
            action=f"set status {content.status.value}",
            target=user.user_name,
            conn=conn,
            log=log,
        )
        data = user.to_profile()

    return Envelope(message="User status updated", data=data)


@admin_routes.delete(
    "/users/{user_id}",
    summary="Delete a user",
    description=(
        "Delete a user who is no longer active, with everything they created. "
        "Requires `admin` grant."
    ),
    responses={
        200: {"description": "User deleted."},
        400: {"description": "The user is still active."},
        404: {"description": "User not found."},
    },
)
async def delete_user(
    user_id: int,
    admin_user: AdminUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[None]:
    log = log.bind(admin_user=admin_user.user_id)

    async with conn.begin():
        user = await user_service.read_by_id(user_id=user_id, conn=conn)
        user_name = user.user_name
        await user_service.delete(user_id=user_id, conn=conn, log=log)
        await activity_service.record(
            user_id=admin_user.user_id,
            action="deleted user",
            target=user_name,
            conn=conn,
            log=log,
        )

    return Envelope(message="User deleted")


@admin_routes.get(
    "/activities",
    summary="Recent administrative activity",
    description="The ten most recent audit trail entries. Requires `admin` grant.",
    responses={
        200: {"description": "List of activities, newest first."},
    },
)
async def activities(
    admin_user: AdminUser, conn: DatabaseDependency
) -> Envelope[list[ActivityData]]:
    async with conn.begin():
        result = await activity_service.recent(conn=conn)
        data = [a.to_core() for a in result]

    return Envelope(data=data)


@admin_routes.get(
    "/dashboard",
    summary="Dashboard figures",
    description=(
        "Totals of users, approved and pending groups, and currently connected "
        "real-time clients. Requires `admin` grant."
    ),
    responses={
        200: {"description": "The dashboard figures."},
    },
)
async def dashboard(
    admin_user: AdminUser, conn: DatabaseDependency, hub: HubDependency
) -> Envelope[DashboardResponse]:
    async with conn.begin():
        counts = await activity_service.dashboard_counts(conn=conn)

    return Envelope(
        data=DashboardResponse(**counts, socket_connections=hub.connection_count)
    )
