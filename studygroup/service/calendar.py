"""
Base for external calendar providers.

The calendar is an opaque, fallible collaborator: every failure is reported
as a `CalendarError`, and callers decide whether that is fatal.
"""

import abc
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from studygroup.core.content import MeetingType


class CalendarError(Exception):
    pass


class CalendarEventRequest(BaseModel):
    title: str
    description: str = ""
    location: str = "Online"
    start: datetime
    end: datetime
    meeting_type: MeetingType = MeetingType.PHYSICAL


class CalendarEventResult(BaseModel):
    event_id: str
    meeting_link: str | None = None


class CalendarProvider(abc.ABC):
    """
    The base class for calendar providers. Downstream must implement:

    - create_event: create a remote event, with a video meeting attached
                    when the meeting type is online.
    - read_event: read back a previously created event.
    """

    name: Literal["none", "mock", "google"]

    @abc.abstractmethod
    async def create_event(self, request: CalendarEventRequest) -> CalendarEventResult:
        raise NotImplementedError

    @abc.abstractmethod
    async def read_event(self, event_id: str) -> CalendarEventResult:
        raise NotImplementedError


class DisabledCalendarProvider(CalendarProvider):
    """
    Used when no calendar is configured. Schedules are still stored locally,
    without a remote event.
    """

    name = "none"

    async def create_event(self, request: CalendarEventRequest) -> CalendarEventResult:
        raise CalendarError("No calendar provider is configured")

    async def read_event(self, event_id: str) -> CalendarEventResult:
        raise CalendarError("No calendar provider is configured")
