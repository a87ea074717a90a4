"""
The real-time hub: which connections are in which rooms, and best-effort
delivery of named events to everyone in a room.

The hub keeps no copy of any entity and offers no ordering, retries or
replay. Delivery problems are logged and swallowed so that they never fail
the request that triggered them; clients that miss an event re-fetch over
HTTP.
"""

import abc
from typing import Any

import socketio
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

ADMIN_ROOM = "admins"


def room_for_group(group_id: int) -> str:
    return f"group_{int(group_id)}"


def room_for_user(user_id: int) -> str:
    return f"user_{int(user_id)}"


class Hub(abc.ABC):
    """
    The base class for hubs. Downstream must implement:

    - join: put a connection in a room. Joining twice is harmless.
    - leave: take a connection out of a room. Leaving a room the connection
             is not in is harmless.
    - deliver: send an event to every connection in a room, except `skip`.
               May raise.

    `broadcast` wraps `deliver` and never raises.
    """

    connections: set[str]
    log: FilteringBoundLogger

    def __init__(self, log: FilteringBoundLogger | None = None):
        self.connections = set()
        self.log = log or get_logger()

    @abc.abstractmethod
    async def join(self, connection: str, room: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def leave(self, connection: str, room: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def deliver(
        self, room: str, event: str, payload: dict[str, Any], skip: str | None
    ) -> None:
        raise NotImplementedError

    async def connected(self, connection: str) -> None:
        self.connections.add(connection)

    async def disconnected(self, connection: str) -> None:
        self.connections.discard(connection)

    @property
    def connection_count(self) -> int:
        return len(self.connections)

    async def broadcast(
        self,
        room: str,
        event: str,
        payload: dict[str, Any],
        skip: str | None = None,
    ) -> None:
        log = self.log.bind(room=room, event=event, skip=skip)

        try:
            await self.deliver(room=room, event=event, payload=payload, skip=skip)
        except Exception as e:
            await log.aerror("realtime.broadcast.failed", error=str(e))
            return

        await log.adebug("realtime.broadcast")


class SocketIOHub(Hub):
    """
    Hub over the rooms of a Socket.IO server. The server itself forgets a
    connection's rooms when it disconnects.
    """

    sio: socketio.AsyncServer

    def __init__(
        self, sio: socketio.AsyncServer, log: FilteringBoundLogger | None = None
    ):
        super().__init__(log=log)
        self.sio = sio

    async def join(self, connection: str, room: str) -> None:
        await self.sio.enter_room(connection, room)

    async def leave(self, connection: str, room: str) -> None:
        await self.sio.leave_room(connection, room)

    async def deliver(
        self, room: str, event: str, payload: dict[str, Any], skip: str | None
    ) -> None:
        await self.sio.emit(event, payload, room=room, skip_sid=skip)
