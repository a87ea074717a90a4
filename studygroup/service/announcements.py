"""
Service layer for group announcements.
"""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.database.content import Announcement


async def create(
    group_id: int,
    author_id: int,
    title: str,
    body: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Announcement:
    log = log.bind(group_id=group_id, author_id=author_id)

    announcement = Announcement(
        group_id=group_id,
        author_id=author_id,
        title=title,
        body=body,
        created_at=datetime.now(timezone.utc),
    )
    conn.add(announcement)
    await conn.flush()

    result = await conn.execute(
        select(Announcement)
        .where(Announcement.announcement_id == announcement.announcement_id)
        .execution_options(populate_existing=True)
    )
    announcement = result.unique().scalar_one()

    await log.ainfo(
        "announcement.created", announcement_id=announcement.announcement_id
    )

    return announcement


async def list_for_group(
    group_id: int, conn: AsyncSession, log: FilteringBoundLogger
) -> list[Announcement]:
    """
    Announcements of a group, newest first.
    """
    result = await conn.execute(
        select(Announcement)
        .where(Announcement.group_id == group_id)
        .order_by(Announcement.created_at.desc(), Announcement.announcement_id.desc())
    )
    announcements = result.unique().scalars().all()

    await log.adebug(
        "announcement.listed", group_id=group_id, number=len(announcements)
    )

    return list(announcements)
