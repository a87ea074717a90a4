"""
An in-process hub, used for testing and development.
"""

from typing import Any

from structlog.typing import FilteringBoundLogger

from .hub import Hub


class MemoryHub(Hub):
    """
    Keeps `room -> connections` in memory and records every event delivered to
    each connection, in order. Set `fail` to make deliveries raise.
    """

    rooms: dict[str, set[str]]
    delivered: dict[str, list[tuple[str, str, dict[str, Any]]]]
    fail: bool

    def __init__(self, log: FilteringBoundLogger | None = None, fail: bool = False):
        super().__init__(log=log)
        self.rooms = {}
        self.delivered = {}
        self.fail = fail

    async def join(self, connection: str, room: str) -> None:
        self.rooms.setdefault(room, set()).add(connection)

    async def leave(self, connection: str, room: str) -> None:
        members = self.rooms.get(room)

        if members is None:
            return

        members.discard(connection)

        if not members:
            del self.rooms[room]

    async def disconnected(self, connection: str) -> None:
        await super().disconnected(connection)

        for room in list(self.rooms):
            await self.leave(connection, room)

    async def deliver(
        self, room: str, event: str, payload: dict[str, Any], skip: str | None
    ) -> None:
        if self.fail:
            raise ConnectionError("Memory hub is failing")

        for connection in self.rooms.get(room, set()):
            if connection == skip:
                continue
            self.delivered.setdefault(connection, []).append((room, event, payload))

    def events_for(self, connection: str, event: str | None = None) -> list:
        """
        Payloads delivered to `connection`, optionally only those of one event.
        """
        return [
            payload
            for _, name, payload in self.delivered.get(connection, [])
            if event is None or name == event
        ]
