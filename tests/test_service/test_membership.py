"""
Tests joining, approval and capacity.
"""

import pytest
from sqlalchemy import func, select

from studygroup.core.errors import RuleRejection
from studygroup.core.group import GroupStatus, MembershipStatus
from studygroup.database.group import Membership
from studygroup.service import groups as groups_service
from studygroup.service import membership as membership_service


async def count_rows(session_manager, group_id: int) -> int:
    async with session_manager.session() as conn:
        result = await conn.execute(
            select(func.count(Membership.membership_id)).where(
                Membership.group_id == group_id
            )
        )
        return result.scalar_one()


@pytest.mark.asyncio(loop_scope="session")
async def test_cs101_scenario(session_manager, logger, create_user):
    user_a = await create_user("cs101_a")
    user_b = await create_user("cs101_b")
    user_c = await create_user("cs101_c")
    user_d = await create_user("cs101_d")

    async with session_manager.session() as conn:
        async with conn.begin():
            group = await groups_service.create(
                group_name="CS101 Study",
                capacity=2,
                created_by_user_id=user_a,
                conn=conn,
                log=logger,
            )
            GROUP_ID = group.group_id
            assert group.status == GroupStatus.PENDING.value

    async with session_manager.session() as conn:
        async with conn.begin():
            group = await groups_service.review(
                group_id=GROUP_ID,
                status=GroupStatus.APPROVED,
                remarks=None,
                conn=conn,
                log=logger,
            )
            assert group.status == GroupStatus.APPROVED.value

    async with session_manager.session() as conn:
        async with conn.begin():
            membership = await membership_service.request_to_join(
                group_id=GROUP_ID, user_id=user_b, conn=conn, log=logger
            )
            assert membership.status == MembershipStatus.PENDING.value

    async with session_manager.session() as conn:
        async with conn.begin():
            membership, changed = await membership_service.approve(
                group_id=GROUP_ID, user_id=user_b, conn=conn, log=logger
            )
            assert membership.status == MembershipStatus.APPROVED.value
            assert changed

    # The creator is not counted.
    async with session_manager.session() as conn:
        assert await groups_service.approved_count(group_id=GROUP_ID, conn=conn) == 1

    async with session_manager.session() as conn:
        async with conn.begin():
            await membership_service.request_to_join(
                group_id=GROUP_ID, user_id=user_d, conn=conn, log=logger
            )
            await membership_service.approve(
                group_id=GROUP_ID, user_id=user_d, conn=conn, log=logger
            )

    rows_before = await count_rows(session_manager, GROUP_ID)

    with pytest.raises(RuleRejection) as e:
        async with session_manager.session() as conn:
            async with conn.begin():
                await membership_service.request_to_join(
                    group_id=GROUP_ID, user_id=user_c, conn=conn, log=logger
                )

    assert str(e.value) == "This group is already full"
    assert e.value.status_code == 200
    assert await count_rows(session_manager, GROUP_ID) == rows_before


@pytest.mark.asyncio(loop_scope="session")
async def test_second_join_while_pending(
    session_manager, logger, create_user, create_group
):
    creator = await create_user("pending_creator")
    joiner = await create_user("pending_joiner")
    group_id = await create_group("Pending Group", created_by_user_id=creator)

    async with session_manager.session() as conn:
        async with conn.begin():
            await membership_service.request_to_join(
                group_id=group_id, user_id=joiner, conn=conn, log=logger
            )

    with pytest.raises(RuleRejection) as e:
        async with session_manager.session() as conn:
            async with conn.begin():
                await membership_service.request_to_join(
                    group_id=group_id, user_id=joiner, conn=conn, log=logger
                )

    assert str(e.value) == "Your join request is pending approval"
    assert e.value.data == {"outcome": "pending"}
    assert await count_rows(session_manager, group_id) == 1


@pytest.mark.asyncio(loop_scope="session")
async def test_join_while_approved(session_manager, logger, create_user, create_group):
    creator = await create_user("approved_creator")
    joiner = await create_user("approved_joiner")
    group_id = await create_group("Approved Group", created_by_user_id=creator)

    async with session_manager.session() as conn:
        async with conn.begin():
            await membership_service.request_to_join(
                group_id=group_id, user_id=joiner, conn=conn, log=logger
            )
            await membership_service.approve(
                group_id=group_id, user_id=joiner, conn=conn, log=logger
            )

    with pytest.raises(RuleRejection) as e:
        async with session_manager.session() as conn:
            async with conn.begin():
                await membership_service.request_to_join(
                    group_id=group_id, user_id=joiner, conn=conn, log=logger
                )

    assert str(e.value) == "You are already a member of this group"

    async with session_manager.session() as conn:
        membership = await membership_service.read(
            group_id=group_id, user_id=joiner, conn=conn
        )
        assert membership.status == MembershipStatus.APPROVED.value

    assert await count_rows(session_manager, group_id) == 1


@pytest.mark.asyncio(loop_scope="session")
async def test_sequential_joins_never_exceed_capacity(
    session_manager, logger, create_user, create_group
):
    creator = await create_user("capacity_creator")
    group_id = await create_group(
        "Capacity Group", created_by_user_id=creator, capacity=3
    )

    full = 0

    for index in range(6):
        joiner = await create_user(f"capacity_joiner_{index}")

        try:
            async with session_manager.session() as conn:
                async with conn.begin():
                    await membership_service.request_to_join(
                        group_id=group_id, user_id=joiner, conn=conn, log=logger
                    )
                    await membership_service.approve(
                        group_id=group_id, user_id=joiner, conn=conn, log=logger
                    )
        except RuleRejection as e:
            assert str(e) == "This group is already full"
            full += 1

        async with session_manager.session() as conn:
            assert await groups_service.approved_count(group_id=group_id, conn=conn) <= 3

    assert full == 3

    async with session_manager.session() as conn:
        assert await groups_service.approved_count(group_id=group_id, conn=conn) == 3


@pytest.mark.asyncio(loop_scope="session")
async def test_approve_when_full(session_manager, logger, create_user, create_group):
    creator = await create_user("approve_full_creator")
    first = await create_user("approve_full_first")
    second = await create_user("approve_full_second")
    group_id = await create_group(
        "Approve Full Group", created_by_user_id=creator, capacity=1
    )

    # Both ask while there is still room.
    async with session_manager.session() as conn:
        async with conn.begin():
            for user_id in (first, second):
                await membership_service.request_to_join(
                    group_id=group_id, user_id=user_id, conn=conn, log=logger
                )

    async with session_manager.session() as conn:
        async with conn.begin():
            await membership_service.approve(
                group_id=group_id, user_id=first, conn=conn, log=logger
            )

    with pytest.raises(RuleRejection) as e:
        async with session_manager.session() as conn:
            async with conn.begin():
                await membership_service.approve(
                    group_id=group_id, user_id=second, conn=conn, log=logger
                )

    assert str(e.value) == "This group is already full"

    async with session_manager.session() as conn:
        membership = await membership_service.read(
            group_id=group_id, user_id=second, conn=conn
        )
        assert membership.status == MembershipStatus.PENDING.value

    # Approving twice is harmless.
    async with session_manager.session() as conn:
        async with conn.begin():
            membership, changed = await membership_service.approve(
                group_id=group_id, user_id=first, conn=conn, log=logger
            )
            assert membership.status == MembershipStatus.APPROVED.value
            assert not changed


@pytest.mark.asyncio(loop_scope="session")
async def test_reject_and_leave(session_manager, logger, create_user, create_group):
    creator = await create_user("leave_creator")
    joiner = await create_user("leave_joiner")
    group_id = await create_group("Leave Group", created_by_user_id=creator)

    async with session_manager.session() as conn:
        async with conn.begin():
            await membership_service.request_to_join(
                group_id=group_id, user_id=joiner, conn=conn, log=logger
            )
            await membership_service.reject(
                group_id=group_id, user_id=joiner, conn=conn, log=logger
            )

    assert await count_rows(session_manager, group_id) == 0

    with pytest.raises(membership_service.MembershipNotFound):
        async with session_manager.session() as conn:
            async with conn.begin():
                await membership_service.reject(
                    group_id=group_id, user_id=joiner, conn=conn, log=logger
                )

    # Rejected users can ask again, and then leave.
    async with session_manager.session() as conn:
        async with conn.begin():
            await membership_service.request_to_join(
                group_id=group_id, user_id=joiner, conn=conn, log=logger
            )
            await membership_service.approve(
                group_id=group_id, user_id=joiner, conn=conn, log=logger
            )

    async with session_manager.session() as conn:
        async with conn.begin():
            await membership_service.leave(
                group_id=group_id, user_id=joiner, conn=conn, log=logger
            )

    assert await count_rows(session_manager, group_id) == 0

    with pytest.raises(membership_service.MembershipNotFound):
        async with session_manager.session() as conn:
            async with conn.begin():
                await membership_service.leave(
                    group_id=group_id, user_id=joiner, conn=conn, log=logger
                )


@pytest.mark.asyncio(loop_scope="session")
async def test_cannot_join_unapproved_or_missing_group(
    session_manager, logger, create_user, create_group
):
    creator = await create_user("closed_creator")
    joiner = await create_user("closed_joiner")
    group_id = await create_group(
        "Closed Group", created_by_user_id=creator, status=GroupStatus.PENDING
    )

    with pytest.raises(membership_service.GroupNotOpen):
        async with session_manager.session() as conn:
            async with conn.begin():
                await membership_service.request_to_join(
                    group_id=group_id, user_id=joiner, conn=conn, log=logger
                )

    with pytest.raises(groups_service.GroupNotFound):
        async with session_manager.session() as conn:
            async with conn.begin():
                await membership_service.request_to_join(
                    group_id=group_id + 10_000, user_id=joiner, conn=conn, log=logger
                )

    assert await count_rows(session_manager, group_id) == 0
