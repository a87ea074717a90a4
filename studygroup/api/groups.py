"""
Group management and membership.
"""

from fastapi import APIRouter

from studygroup.core.errors import ForbiddenError
from studygroup.core.group import GroupStatus, GroupSummary, MembershipData
from studygroup.core.models import (
    Envelope,
    GroupCreationRequest,
    GroupUpdateRequest,
    JoinRequest,
)
from studygroup.realtime.events import notify
from studygroup.realtime.hub import ADMIN_ROOM, room_for_user
from studygroup.service import activity as activity_service
from studygroup.service import groups as groups_service
from studygroup.service import membership as membership_service

from .dependencies import (
    AdminUser,
    AuthenticatedUser,
    DatabaseDependency,
    HubDependency,
    LoggerDependency,
)

group_app = APIRouter(tags=["Group Management"])


@group_app.get(
    "/list",
    summary="List open groups",
    description=(
        "Retrieve every approved group, newest first, with its approved member "
        "count and the name of its creator."
    ),
    responses={
        200: {"description": "List of groups."},
    },
)
async def list_groups(
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[list[GroupSummary]]:
    log = log.bind(user_id=user.user_id)

    async with conn.begin():
        groups = await groups_service.get_group_list(conn=conn, log=log)

    return Envelope(data=groups)


@group_app.get(
    "/all",
    summary="List all groups",
    description="Retrieve every group whatever its status. Requires `admin` grant.",
    responses={
        200: {"description": "List of groups."},
        403: {"description": "Not an administrator."},
    },
)
async def list_all_groups(
    user: AdminUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[list[GroupSummary]]:
    async with conn.begin():
        groups = await groups_service.get_group_list(conn=conn, log=log, status=None)

    return Envelope(data=groups)


@group_app.get(
    "/user/{user_id}",
    summary="List a user's groups",
    description=(
        "Groups the user created or is an approved member of. Users may only "
        "list their own groups unless they are administrators."
    ),
    responses={
        200: {"description": "List of groups."},
        403: {"description": "Not your groups."},
    },
)
async def list_user_groups(
    user_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[list[GroupSummary]]:
    if user_id != user.user_id and not user.is_admin:
        raise ForbiddenError("You can only list your own groups")

    async with conn.begin():
        groups = await groups_service.groups_for_user(
            user_id=user_id, conn=conn, log=log
        )

    return Envelope(data=groups)


@group_app.post(
    "",
    status_code=201,
    summary="Create a new group",
    description=(
        "Create a group owned by the caller. It starts out pending until an "
        "administrator approves it. The creator is not added as a member."
    ),
    responses={
        201: {"description": "Group created successfully."},
        422: {"description": "Invalid input data."},
    },
)
async def create_group(
    content: GroupCreationRequest,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
    hub: HubDependency,
) -> Envelope[GroupSummary]:
    log = log.bind(user_id=user.user_id, group_name=content.group_name)

    async with conn.begin():
        group = await groups_service.create(
            created_by_user_id=user.user_id,
            conn=conn,
            log=log,
            **content.model_dump(),
        )
        await activity_service.record(
            user_id=user.user_id,
            action="created group",
            target=group.group_name,
            conn=conn,
            log=log,
        )
        data = groups_service.summarise(group, approved_count=0)

    await notify(
        hub,
        ADMIN_ROOM,
        kind="group_pending",
        message=f"{user.user_name} created the group {data.group_name}",
        group_id=data.group_id,
    )

    return Envelope(message="Group created and awaiting approval", data=data)


@group_app.post(
    "/join",
    summary="Ask to join a group",
    description=(
        "Create a pending membership. If the caller is already a member, already "
        "waiting, or the group is full, `success` is false and nothing changes."
    ),
    responses={
        200: {"description": "Request recorded, or refused by a group rule."},
        400: {"description": "The group is not open."},
        403: {"description": "Asking on behalf of someone else."},
        404: {"description": "Group not found."},
    },
)
async def join_group(
    content: JoinRequest,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
    hub: HubDependency,
) -> Envelope[MembershipData]:
    if content.user_id != user.user_id and not user.is_admin:
        raise ForbiddenError("You can only ask to join on your own behalf")

    async with conn.begin():
        membership = await membership_service.request_to_join(
            group_id=content.group_id, user_id=content.user_id, conn=conn, log=log
        )
        group = await groups_service.read_by_id(
            group_id=content.group_id, conn=conn, log=log
        )
        data = membership.to_core()

    await notify(
        hub,
        room_for_user(group.created_by_user_id),
        kind="join_request",
        message=f"{data.user_name} asked to join {group.group_name}",
        group_id=group.group_id,
        user_id=data.user_id,
    )

    return Envelope(message="Join request sent", data=data)


@group_app.get(
    "/{group_id}",
    summary="Get group by ID",
    description=(
        "Retrieve a group with its approved member count. Groups that are not "
        "yet approved are visible only to their creator and administrators."
    ),
    responses={
        200: {"description": "Group details."},
        403: {"description": "The group is not visible to you."},
        404: {"description": "Group not found."},
    },
)
async def get_group_by_id(
    group_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[GroupSummary]:
    log = log.bind(group_id=group_id, user_id=user.user_id)

    async with conn.begin():
        group = await groups_service.read_summary(group_id=group_id, conn=conn, log=log)

        if group.status != GroupStatus.APPROVED:
            await groups_service.require_manager(
                group_id=group_id, user=user, conn=conn, log=log
            )

    return Envelope(data=group)


@group_app.get(
    "/{group_id}/members",
    summary="List group members",
    description=(
        "Approved members and pending requests, in request order. Requires "
        "membership of the group, being its creator, or the `admin` grant."
    ),
    responses={
        200: {"description": "List of memberships."},
        403: {"description": "Not a member of the group."},
        404: {"description": "Group not found."},
    },
)
async def list_members(
    group_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[list[MembershipData]]:
    async with conn.begin():
        await groups_service.require_access(
            group_id=group_id, user=user, conn=conn, log=log
        )
        members = await membership_service.list_members(
            group_id=group_id, conn=conn, log=log
        )
        data = [m.to_core() for m in members]

    return Envelope(data=data)


@group_app.put(
    "/{group_id}",
    summary="Update a group",
    description=(
        "Partially update a group. Only its creator or an administrator may do "
        "this, and the capacity cannot drop below the approved member count."
    ),
    responses={
        200: {"description": "The updated group."},
        400: {"description": "Capacity below the approved member count."},
        403: {"description": "Not the creator."},
        404: {"description": "Group not found."},
    },
)
async def update_group(
    group_id: int,
    content: GroupUpdateRequest,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[GroupSummary]:
    async with conn.begin():
        await groups_service.require_manager(
            group_id=group_id, user=user, conn=conn, log=log
        )
        await groups_service.update(
            group_id=group_id, conn=conn, log=log, **content.model_dump()
        )
        data = await groups_service.read_summary(group_id=group_id, conn=conn, log=log)

    return Envelope(message="Group updated", data=data)


@group_app.delete(
    "/{group_id}",
    summary="Delete a group",
    description=(
        "Delete a group by its ID, with its memberships, messages, schedules and "
        "announcements. Only the creator of the group or an admin can delete it."
    ),
    responses={
        200: {"description": "Group deleted successfully."},
        403: {"description": "Access denied to delete this group."},
        404: {"description": "Group not found."},
    },
)
async def delete_group(
    group_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[None]:
    log = log.bind(group_id=group_id, user_id=user.user_id)

    async with conn.begin():
        group = await groups_service.require_manager(
            group_id=group_id, user=user, conn=conn, log=log
        )
        group_name = group.group_name
        await groups_service.delete_group(group_id=group_id, conn=conn, log=log)
        await activity_service.record(
            user_id=user.user_id,
            action="deleted group",
            target=group_name,
            conn=conn,
            log=log,
        )

    return Envelope(message="Group deleted")


@group_app.post(
    "/{group_id}/requests/{user_id}/approve",
    summary="Approve a join request",
    description=(
        "Turn a pending request into an approved membership. Only the creator or "
        "an administrator may approve. If the group is full, `success` is false."
    ),
    responses={
        200: {"description": "Approved, or refused because the group is full."},
        403: {"description": "Not the creator."},
        404: {"description": "No such group or request."},
    },
)
async def approve_request(
    group_id: int,
    user_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
    hub: HubDependency,
) -> Envelope[MembershipData]:
    async with conn.begin():
        group = await groups_service.require_manager(
            group_id=group_id, user=user, conn=conn, log=log
        )
        group_name = group.group_name
        membership, changed = await membership_service.approve(
            group_id=group_id, user_id=user_id, conn=conn, log=log
        )
        data = membership.to_core()

    if not changed:
        return Envelope(message="Already a member", data=data)

    await hub.broadcast(
        room=room_for_user(user_id),
        event="request_approved",
        payload={"group_id": group_id, "group_name": group_name},
    )
    await notify(
        hub,
        room_for_user(user_id),
        kind="request_approved",
        message=f"You are now a member of {group_name}",
        group_id=group_id,
    )

    return Envelope(message="Request approved", data=data)


@group_app.post(
    "/{group_id}/requests/{user_id}/reject",
    summary="Reject a join request",
    description="Remove a pending request. Only the creator or an administrator.",
    responses={
        200: {"description": "Request removed."},
        403: {"description": "Not the creator."},
        404: {"description": "No such group or pending request."},
    },
)
async def reject_request(
    group_id: int,
    user_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
    hub: HubDependency,
) -> Envelope[None]:
    async with conn.begin():
        group = await groups_service.require_manager(
            group_id=group_id, user=user, conn=conn, log=log
        )
        group_name = group.group_name
        await membership_service.reject(
            group_id=group_id, user_id=user_id, conn=conn, log=log
        )

    await notify(
        hub,
        room_for_user(user_id),
        kind="request_rejected",
        message=f"Your request to join {group_name} was declined",
        group_id=group_id,
    )

    return Envelope(message="Request rejected")


@group_app.post(
    "/{group_id}/leave",
    summary="Leave a group",
    description="Remove the caller's membership, or withdraw a pending request.",
    responses={
        200: {"description": "Left the group."},
        404: {"description": "Not a member of the group."},
    },
)
async def leave_group(
    group_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[None]:
    async with conn.begin():
        await membership_service.leave(
            group_id=group_id, user_id=user.user_id, conn=conn, log=log
        )

    return Envelope(message="You have left the group")
