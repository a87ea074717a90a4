"""
Socket.IO event handlers, and the chat relay shared with the HTTP API.

Every broadcast happens after the transaction that produced its payload has
committed.
"""

from typing import Any

import socketio
from socketio.exceptions import ConnectionRefusedError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from studygroup.config.managers import AsyncSessionManager
from studygroup.core.content import MessageData
from studygroup.core.errors import StudyGroupError
from studygroup.core.models import Envelope
from studygroup.core.tokens import (
    KeyDecodeError,
    KeyExpiredError,
    KeyInactiveError,
    SigningKeys,
    decode_access_token,
)
from studygroup.core.user import UserData
from studygroup.service import groups as groups_service
from studygroup.service import messages as messages_service
from studygroup.service import user as user_service

from .hub import ADMIN_ROOM, Hub, room_for_group, room_for_user
from .socketio import extract_token, group_id_from


async def relay_chat_message(
    group_id: int,
    user: UserData,
    conn: AsyncSession,
    hub: Hub,
    log: FilteringBoundLogger,
    text: str | None = None,
    file_link: str | None = None,
    connection: str | None = None,
) -> MessageData:
    """
    Store a chat message and send it to everyone else in the group's room.

    Parameters
    ----------
    connection: str | None
        The sender's socket, which is left out of the broadcast; it gets the
        stored message back directly instead.

    Raises
    ------
    GroupNotFound, GroupAccessDenied, EmptyMessage
        Before anything is written or sent.
    """
    log = log.bind(group_id=group_id, user_id=user.user_id)

    async with conn.begin():
        await groups_service.require_access(
            group_id=group_id, user=user, conn=conn, log=log
        )
        message = await messages_service.create(
            group_id=group_id,
            sender_id=user.user_id,
            text=text,
            file_link=file_link,
            conn=conn,
            log=log,
        )
        data = message.to_core()

    await hub.broadcast(
        room=room_for_group(group_id),
        event="receive_message",
        payload={"group_id": group_id, "message": data.model_dump(mode="json")},
        skip=connection,
    )

    return data


async def notify(hub: Hub, room: str, kind: str, message: str, **details):
    """
    Send a `notification` event, the generic toast shown by clients.
    """
    await hub.broadcast(
        room=room,
        event="notification",
        payload={"type": kind, "message": message, **details},
    )


def ack(success: bool, message: str | None = None, data: Any = None) -> dict:
    return Envelope(success=success, message=message, data=data).model_dump(
        mode="json"
    )


def register_handlers(
    sio: socketio.AsyncServer,
    hub: Hub,
    manager: AsyncSessionManager,
    keys: SigningKeys,
    log: FilteringBoundLogger | None = None,
):
    """
    Attach the connection lifecycle and group events to `sio`. Handlers
    return the response envelope, which clients receive as the
    acknowledgement.
    """
    log = log or get_logger()

    async def session_user(sid: str) -> UserData:
        session = await sio.get_session(sid)
        return UserData.model_validate(session["user"])

    async def connect(sid: str, environ: dict[str, Any], auth: Any | None = None):
        token = extract_token(environ, auth)

        if not token:
            raise ConnectionRefusedError("unauthorized")

        try:
            user = decode_access_token(
                access_token=token,
                public_key=keys.public_key,
                key_pair_type=keys.key_pair_type,
            )
        except KeyExpiredError as e:
            raise ConnectionRefusedError("jwt_expired") from e
        except KeyInactiveError as e:
            raise ConnectionRefusedError("suspended") from e
        except KeyDecodeError as e:
            raise ConnectionRefusedError("unauthorized") from e

        async with manager.session() as conn:
            try:
                account = await user_service.read_by_id(user_id=user.user_id, conn=conn)
            except user_service.UserNotFound as e:
                raise ConnectionRefusedError("unauthorized") from e

            if not account.is_active:
                await log.ainfo("realtime.connect.suspended", user_id=user.user_id)
                raise ConnectionRefusedError("suspended")

        await sio.save_session(sid, {"user": user.model_dump(mode="json")})

        await hub.connected(sid)
        await hub.join(sid, room_for_user(user.user_id))

        if user.is_admin:
            await hub.join(sid, ADMIN_ROOM)

        await log.ainfo("realtime.connected", sid=sid, user_id=user.user_id)

    async def disconnect(sid: str, *args):
        await hub.disconnected(sid)
        await log.ainfo("realtime.disconnected", sid=sid)

    async def join_group(sid: str, data: Any):
        group_id = group_id_from(data)

        if group_id is None:
            return ack(False, "A group id is required")

        user = await session_user(sid)

        try:
            async with manager.session() as conn:
                async with conn.begin():
                    await groups_service.require_access(
                        group_id=group_id, user=user, conn=conn, log=log
                    )
        except StudyGroupError as e:
            return ack(False, str(e))

        room = room_for_group(group_id)
        await hub.join(sid, room)
        await log.adebug("realtime.group.joined", sid=sid, room=room)

        return ack(True, data={"room": room})

    async def leave_group(sid: str, data: Any):
        group_id = group_id_from(data)

        if group_id is None:
            return ack(False, "A group id is required")

        room = room_for_group(group_id)
        await hub.leave(sid, room)
        await log.adebug("realtime.group.left", sid=sid, room=room)

        return ack(True, data={"room": room})

    async def send_message(sid: str, data: Any):
        group_id = group_id_from(data)

        if not isinstance(data, dict) or group_id is None:
            return ack(False, "A group id is required")

        user = await session_user(sid)

        try:
            async with manager.session() as conn:
                message = await relay_chat_message(
                    group_id=group_id,
                    user=user,
                    conn=conn,
                    hub=hub,
                    log=log,
                    text=data.get("text"),
                    file_link=data.get("file_link", data.get("fileLink")),
                    connection=sid,
                )
        except StudyGroupError as e:
            return ack(False, str(e))
        except SQLAlchemyError as e:
            await log.aerror("realtime.send_message.failed", sid=sid, error=str(e))
            return ack(False, "Could not send message")

        return ack(True, data=message.model_dump(mode="json"))

    sio.on("connect", connect)
    sio.on("disconnect", disconnect)

    for name in ("join-group", "join_group"):
        sio.on(name, join_group)

    for name in ("leave-group", "leave_group"):
        sio.on(name, leave_group)

    sio.on("send_message", send_message)
