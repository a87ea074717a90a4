"""
The administrative audit trail and the figures shown on the admin dashboard.
"""

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.core.group import GroupStatus
from studygroup.database.content import Activity
from studygroup.database.user import User

from . import groups as groups_service


async def record(
    user_id: int,
    action: str,
    target: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Activity:
    activity = Activity(
        user_id=user_id,
        action=action,
        target=target,
        created_at=datetime.now(timezone.utc),
    )
    conn.add(activity)
    await conn.flush()

    await log.adebug("activity.recorded", user_id=user_id, action=action)

    return activity


async def recent(conn: AsyncSession, limit: int = 10) -> list[Activity]:
    result = await conn.execute(
        select(Activity)
        .order_by(Activity.created_at.desc(), Activity.activity_id.desc())
        .limit(limit)
    )
    return list(result.unique().scalars().all())


async def dashboard_counts(conn: AsyncSession) -> dict[str, int]:
    total_users = (await conn.execute(select(func.count(User.user_id)))).scalar_one()

    return {
        "total_users": total_users,
        "approved_groups": await groups_service.count_by_status(
            GroupStatus.APPROVED, conn=conn
        ),
        "pending_groups": await groups_service.count_by_status(
            GroupStatus.PENDING, conn=conn
        ),
    }
