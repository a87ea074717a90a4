"""
Service layer for in-group chat messages.
"""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.core.errors import InvalidRequestError
from studygroup.database.content import Message


class EmptyMessage(InvalidRequestError):
    pass


async def create(
    group_id: int,
    sender_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    text: str | None = None,
    file_link: str | None = None,
) -> Message:
    """
    Store a message and read it back joined with its sender, ready to be
    broadcast.

    Raises
    ------
    EmptyMessage
        If neither text nor a file link was given.
    """
    log = log.bind(group_id=group_id, sender_id=sender_id)

    if not text and not file_link:
        await log.ainfo("message.empty")
        raise EmptyMessage("A message needs text or a file link")

    message = Message(
        group_id=group_id,
        sender_id=sender_id,
        text=text,
        file_link=file_link,
        created_at=datetime.now(timezone.utc),
    )
    conn.add(message)
    await conn.flush()

    message = await read_by_id(message_id=message.message_id, conn=conn)

    await log.ainfo("message.created", message_id=message.message_id)

    return message


async def read_by_id(message_id: int, conn: AsyncSession) -> Message:
    result = await conn.execute(
        select(Message)
        .where(Message.message_id == message_id)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one()


async def list_for_group(
    group_id: int, conn: AsyncSession, log: FilteringBoundLogger
) -> list[Message]:
    """
    Messages of a group, oldest first.
    """
    result = await conn.execute(
        select(Message)
        .where(Message.group_id == group_id)
        .order_by(Message.created_at, Message.message_id)
    )
    messages = result.unique().scalars().all()

    await log.adebug("message.listed", group_id=group_id, number=len(messages))

    return list(messages)
