"""
Group chat over HTTP. Sending here goes through the same relay as the
`send_message` socket event.
"""

from fastapi import APIRouter

from studygroup.core.content import MessageData
from studygroup.core.models import Envelope, MessageCreationRequest
from studygroup.realtime.events import relay_chat_message
from studygroup.service import groups as groups_service
from studygroup.service import messages as messages_service

from .dependencies import (
    AuthenticatedUser,
    DatabaseDependency,
    HubDependency,
    LoggerDependency,
    SocketIdDependency,
)

message_app = APIRouter(tags=["Messages"])


@message_app.get(
    "/{group_id}/messages",
    summary="Read a group's messages",
    description="All messages of the group, oldest first, with sender names.",
    responses={
        200: {"description": "List of messages."},
        403: {"description": "Not a member of the group."},
        404: {"description": "Group not found."},
    },
)
async def list_messages(
    group_id: int,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[list[MessageData]]:
    async with conn.begin():
        await groups_service.require_access(
            group_id=group_id, user=user, conn=conn, log=log
        )
        messages = await messages_service.list_for_group(
            group_id=group_id, conn=conn, log=log
        )
        data = [m.to_core() for m in messages]

    return Envelope(data=data)


@message_app.post(
    "/{group_id}/messages",
    status_code=201,
    summary="Send a message",
    description=(
        "Store a message and broadcast `receive_message` to the group room. The "
        "connection named by `X-Socket-Id`, if any, is left out."
    ),
    responses={
        201: {"description": "The stored message."},
        403: {"description": "Not a member of the group."},
        404: {"description": "Group not found."},
    },
)
async def send_message(
    group_id: int,
    content: MessageCreationRequest,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
    hub: HubDependency,
    socket_id: SocketIdDependency = None,
) -> Envelope[MessageData]:
    message = await relay_chat_message(
        group_id=group_id,
        user=user,
        conn=conn,
        hub=hub,
        log=log,
        text=content.text,
        file_link=content.file_link,
        connection=socket_id,
    )

    return Envelope(message="Message sent", data=message)
