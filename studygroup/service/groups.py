"""
Service layer for groups.
"""

from datetime import datetime, timezone

from sqlalchemy import delete, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from structlog.typing import FilteringBoundLogger

from studygroup.core.errors import ForbiddenError, InvalidRequestError, NotFoundError
from studygroup.core.group import GroupStatus, GroupSummary, MembershipStatus
from studygroup.core.user import UserData
from studygroup.database.group import Group, Membership

from . import user as user_service


class GroupNotFound(NotFoundError):
    pass


class GroupAccessDenied(ForbiddenError):
    pass


class CapacityBelowMembership(InvalidRequestError):
    pass


def approved_count_for(group_id_column):
    """
    A scalar subquery counting the approved memberships of the group(s) given
    by `group_id_column`, which may be a column of an enclosing query or a
    plain integer.
    """
    counted = aliased(Membership)
    return (
        select(func.count(counted.membership_id))
        .where(
            counted.group_id == group_id_column,
            counted.status == MembershipStatus.APPROVED.value,
        )
        .scalar_subquery()
    )


def summarise(group: Group, approved_count: int) -> GroupSummary:
    return GroupSummary(
        **group.to_core().model_dump(),
        approved_count=approved_count,
        creator_name=group.created_by.user_name if group.created_by else None,
    )


async def create(
    group_name: str,
    capacity: int,
    created_by_user_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    description: str | None = None,
    subject: str | None = None,
    course: str | None = None,
    location: str | None = None,
) -> Group:
    """
    Create a new group. Groups start out pending and must be approved by an
    administrator before they are listed or can be joined. The creator is not
    made a member.

    Parameters
    ----------
    group_name: str
        The display name of the new group.
    capacity: int
        The maximum number of approved members.
    created_by_user_id: int
        The user that created, and can manage, this group.

    Raises
    ------
    UserNotFound
        If the creating user does not exist.
    """

    log = log.bind(
        group_name=group_name, user_id=created_by_user_id, capacity=capacity
    )

    created_by = await user_service.read_by_id(user_id=created_by_user_id, conn=conn)

    group = Group(
        group_name=group_name.strip(),
        capacity=capacity,
        description=description,
        subject=subject,
        course=course,
        location=location,
        status=GroupStatus.PENDING.value,
        created_by_user_id=created_by_user_id,
        created_by=created_by,
        created_at=datetime.now(tz=timezone.utc),
    )
    conn.add(group)
    await conn.flush()

    await log.ainfo("group.created", group_id=group.group_id)

    return group


async def get_group_list(
    conn: AsyncSession,
    log: FilteringBoundLogger,
    status: GroupStatus | None = GroupStatus.APPROVED,
) -> list[GroupSummary]:
    """
    Get a list of groups, newest first, each with its approved member count.

    Parameters
    ----------
    conn: AsyncSession
        The database session.
    log: FilteringBoundLogger
        Logger instance.
    status: GroupStatus | None
        Only return groups in this state. `None` returns every group.
    """
    log = log.bind(status=status)

    query = select(Group, approved_count_for(Group.group_id)).order_by(
        Group.created_at.desc(), Group.group_id.desc()
    )

    if status is not None:
        query = query.where(Group.status == status.value)

    rows = (await conn.execute(query)).unique().all()
    groups = [summarise(group, count) for group, count in rows]

    await log.adebug("group.listed", number_of_groups=len(groups))
    return groups


async def groups_for_user(
    user_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> list[GroupSummary]:
    """
    The groups a user created or holds an approved membership of.
    """
    log = log.bind(for_user=user_id)

    is_member = exists().where(
        Membership.group_id == Group.group_id,
        Membership.user_id == user_id,
        Membership.status == MembershipStatus.APPROVED.value,
    )

    query = (
        select(Group, approved_count_for(Group.group_id))
        .where(or_(Group.created_by_user_id == user_id, is_member))
        .order_by(Group.created_at.desc(), Group.group_id.desc())
    )

    rows = (await conn.execute(query)).unique().all()
    groups = [summarise(group, count) for group, count in rows]

    await log.adebug("group.listed", number_of_groups=len(groups))
    return groups


async def read_by_id(
    group_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Read a group by its ID.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    """
    log = log.bind(group_id=group_id)
    result = await conn.execute(select(Group).where(Group.group_id == group_id))
    group = result.unique().scalar_one_or_none()
    if not group:
        await log.ainfo("group.not_found")
        raise GroupNotFound(f"Group with id {group_id} not found")
    await log.adebug("group.found")
    return group


async def read_summary(
    group_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> GroupSummary:
    group = await read_by_id(group_id=group_id, conn=conn, log=log)
    return summarise(group, await approved_count(group_id=group_id, conn=conn))


async def approved_count(group_id: int, conn: AsyncSession) -> int:
    return (await conn.execute(select(approved_count_for(group_id)))).scalar_one()


async def is_approved_member(group_id: int, user_id: int, conn: AsyncSession) -> bool:
    result = await conn.execute(
        select(Membership.membership_id).where(
            Membership.group_id == group_id,
            Membership.user_id == user_id,
            Membership.status == MembershipStatus.APPROVED.value,
        )
    )
    return result.first() is not None


async def require_access(
    group_id: int,
    user: UserData,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Return the group if `user` may read its contents: they must be an approved
    member, the creator, or an admin.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    GroupAccessDenied
        If the user may not see inside the group.
    """
    log = log.bind(group_id=group_id, user_id=user.user_id)
    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    if user.is_admin or group.created_by_user_id == user.user_id:
        return group

    if await is_approved_member(group_id=group_id, user_id=user.user_id, conn=conn):
        return group

    await log.awarn("group.access_denied")
    raise GroupAccessDenied("You are not a member of this group")


async def require_manager(
    group_id: int,
    user: UserData,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Return the group if `user` is its creator or an admin.
    """
    log = log.bind(group_id=group_id, user_id=user.user_id)
    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    if user.is_admin or group.created_by_user_id == user.user_id:
        return group

    await log.awarn("group.manage.access_denied")
    raise GroupAccessDenied("Only the group creator or an administrator can do that")


async def update(
    group_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    **changes,
) -> Group:
    """
    Partially update a group. Keys with value `None` are left alone.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    CapacityBelowMembership
        If the new capacity is lower than the number of approved members.
    """
    changes = {k: v for k, v in changes.items() if v is not None}
    log = log.bind(group_id=group_id, fields=sorted(changes))

    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    if "capacity" in changes:
        current = await approved_count(group_id=group_id, conn=conn)
        if changes["capacity"] < current:
            await log.ainfo("group.update.capacity_too_small", approved_count=current)
            raise CapacityBelowMembership(
                f"Capacity cannot be lower than the {current} approved members"
            )

    for key, value in changes.items():
        setattr(group, key, value)

    group.updated_at = datetime.now(tz=timezone.utc)
    conn.add(group)
    await conn.flush()

    await log.ainfo("group.updated")
    return group


async def review(
    group_id: int,
    status: GroupStatus,
    remarks: str | None,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Approve or reject a pending group.
    """
    log = log.bind(group_id=group_id, status=status.value)

    if status == GroupStatus.PENDING:
        raise InvalidRequestError("A group can only be approved or rejected")

    group = await read_by_id(group_id=group_id, conn=conn, log=log)
    group.status = status.value
    group.remarks = remarks
    group.updated_at = datetime.now(tz=timezone.utc)
    conn.add(group)
    await conn.flush()

    await log.ainfo("group.reviewed")
    return group


async def delete_group(
    group_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> None:
    """
    Delete a group by its ID. Memberships, messages, schedules and
    announcements go with it.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    """
    log = log.bind(group_id=group_id)
    group = await read_by_id(group_id=group_id, conn=conn, log=log)
    await conn.execute(delete(Group).where(Group.group_id == group_id))
    conn.expunge(group)
    await log.ainfo("group.deleted")


async def count_by_status(status: GroupStatus, conn: AsyncSession) -> int:
    result = await conn.execute(
        select(func.count(Group.group_id)).where(Group.status == status.value)
    )
    return result.scalar_one()
