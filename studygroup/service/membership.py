"""
Service layer for group membership: join requests, their review by the group
creator, and leaving.

The approved member count of a group must never exceed its capacity, even
when several requests race. Joins are therefore a single conditional
INSERT ... SELECT and approvals lock the group row before a conditional
UPDATE; neither reads the count and writes in separate statements.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, delete, exists, insert, literal
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.core.errors import InvalidRequestError, NotFoundError, RuleRejection
from studygroup.core.group import GroupStatus, JoinOutcome, MembershipStatus
from studygroup.database.group import Group, Membership

from . import groups as groups_service
from . import user as user_service

ALREADY_MEMBER_MESSAGE = "You are already a member of this group"
PENDING_MESSAGE = "Your join request is pending approval"
FULL_MESSAGE = "This group is already full"


class MembershipNotFound(NotFoundError):
    pass


class GroupNotOpen(InvalidRequestError):
    pass


def rejection(outcome: JoinOutcome) -> RuleRejection:
    message = {
        JoinOutcome.ALREADY_MEMBER: ALREADY_MEMBER_MESSAGE,
        JoinOutcome.PENDING: PENDING_MESSAGE,
        JoinOutcome.FULL: FULL_MESSAGE,
    }[outcome]
    return RuleRejection(message, data={"outcome": outcome.value})


async def read(group_id: int, user_id: int, conn: AsyncSession) -> Membership:
    result = await conn.execute(
        select(Membership).where(
            Membership.group_id == group_id, Membership.user_id == user_id
        )
    )
    membership = result.unique().scalar_one_or_none()

    if membership is None:
        raise MembershipNotFound(
            f"User {user_id} has no membership of group {group_id}"
        )

    return membership


async def request_to_join(
    group_id: int,
    user_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Membership:
    """
    Ask to join a group. On success a pending membership is created.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    GroupNotOpen
        If the group has not been approved by an administrator.
    RuleRejection
        If the user is already a member, already has a pending request, or
        the group is full. Nothing is written in any of these cases.
    """
    log = log.bind(group_id=group_id, user_id=user_id)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)
    await user_service.read_by_id(user_id=user_id, conn=conn)

    if group.status != GroupStatus.APPROVED.value:
        await log.ainfo("membership.join.group_not_open", status=group.status)
        raise GroupNotOpen("This group is not open for joining")

    try:
        existing = await read(group_id=group_id, user_id=user_id, conn=conn)
    except MembershipNotFound:
        existing = None

    if existing is not None:
        outcome = (
            JoinOutcome.ALREADY_MEMBER
            if existing.status == MembershipStatus.APPROVED.value
            else JoinOutcome.PENDING
        )
        await log.ainfo("membership.join.rejected", outcome=outcome.value)
        raise rejection(outcome)

    already_there = exists().where(
        Membership.group_id == group_id, Membership.user_id == user_id
    )

    source = select(
        literal(group_id, Integer),
        literal(user_id, Integer),
        literal(MembershipStatus.PENDING.value, String),
        literal(datetime.now(timezone.utc), DateTime(timezone=True)),
    ).where(
        Group.group_id == group_id,
        groups_service.approved_count_for(group_id) < Group.capacity,
        ~already_there,
    )

    statement = insert(Membership).from_select(
        ["group_id", "user_id", "status", "joined_at"], source
    )

    try:
        result = await conn.execute(statement)
    except IntegrityError:
        # A concurrent request for the same pair won the unique constraint.
        await log.ainfo("membership.join.raced")
        raise rejection(JoinOutcome.PENDING)

    if result.rowcount == 0:
        await log.ainfo("membership.join.full", capacity=group.capacity)
        raise rejection(JoinOutcome.FULL)

    membership = await read(group_id=group_id, user_id=user_id, conn=conn)

    await log.ainfo("membership.join.requested", membership_id=membership.membership_id)

    return membership


async def approve(
    group_id: int,
    user_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> tuple[Membership, bool]:
    """
    Approve a pending join request. Approving an already approved member is a
    no-op.

    Returns
    -------
    membership: Membership
        The approved membership.
    changed: bool
        False when the member was already approved.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    MembershipNotFound
        If the user never asked to join.
    RuleRejection
        If the group is already at capacity.
    """
    log = log.bind(group_id=group_id, user_id=user_id)

    # Serialise approvals for this group until the transaction ends.
    locked = await conn.execute(
        select(Group.capacity).where(Group.group_id == group_id).with_for_update()
    )
    capacity = locked.scalar_one_or_none()

    if capacity is None:
        await log.ainfo("group.not_found")
        raise groups_service.GroupNotFound(f"Group with id {group_id} not found")

    membership = await read(group_id=group_id, user_id=user_id, conn=conn)

    if membership.status == MembershipStatus.APPROVED.value:
        await log.ainfo("membership.approve.already_approved")
        return membership, False

    result = await conn.execute(
        update(Membership)
        .where(
            Membership.membership_id == membership.membership_id,
            Membership.status == MembershipStatus.PENDING.value,
            groups_service.approved_count_for(group_id) < capacity,
        )
        .values(status=MembershipStatus.APPROVED.value)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        await log.ainfo("membership.approve.full", capacity=capacity)
        raise rejection(JoinOutcome.FULL)

    await conn.refresh(membership)

    await log.ainfo("membership.approved", membership_id=membership.membership_id)

    return membership, True


async def reject(
    group_id: int,
    user_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> None:
    """
    Turn down a pending join request by removing it.

    Raises
    ------
    MembershipNotFound
        If there is no pending request for this user.
    """
    log = log.bind(group_id=group_id, user_id=user_id)

    result = await conn.execute(
        delete(Membership).where(
            Membership.group_id == group_id,
            Membership.user_id == user_id,
            Membership.status == MembershipStatus.PENDING.value,
        )
    )

    if result.rowcount == 0:
        await log.ainfo("membership.reject.not_found")
        raise MembershipNotFound(
            f"User {user_id} has no pending request for group {group_id}"
        )

    await log.ainfo("membership.rejected")


async def leave(
    group_id: int,
    user_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> None:
    """
    Remove a user's membership (or pending request) from a group.

    Raises
    ------
    MembershipNotFound
        If the user is not in the group.
    """
    log = log.bind(group_id=group_id, user_id=user_id)

    membership = await read(group_id=group_id, user_id=user_id, conn=conn)
    await conn.execute(
        delete(Membership).where(
            Membership.membership_id == membership.membership_id
        )
    )
    conn.expunge(membership)

    await log.ainfo("membership.left")


async def list_members(
    group_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> list[Membership]:
    """
    All memberships of a group, approved and pending, in the order they were
    requested.
    """
    log = log.bind(group_id=group_id)

    result = await conn.execute(
        select(Membership)
        .where(Membership.group_id == group_id)
        .order_by(Membership.joined_at, Membership.membership_id)
    )
    members = result.unique().scalars().all()

    await log.adebug("membership.listed", number_of_members=len(members))

    return list(members)
