"""
Mock calendar and identity providers, used for testing and development.
"""

from studygroup.config.settings import Settings
from studygroup.core.content import MeetingType

from .calendar import (
    CalendarError,
    CalendarEventRequest,
    CalendarEventResult,
    CalendarProvider,
)
from .provider import BaseLoginError, ExternalIdentity, IdentityProvider


class MockLoginError(BaseLoginError):
    pass


class MockCalendarProvider(CalendarProvider):
    """
    Keeps events in memory. Event identifiers and meeting links are
    deterministic so tests can assert on them. Set `fail` to make every call
    raise.
    """

    name = "mock"

    events: dict[str, CalendarEventRequest]
    fail: bool

    def __init__(self, fail: bool = False):
        self.events = {}
        self.fail = fail

    async def create_event(self, request: CalendarEventRequest) -> CalendarEventResult:
        if self.fail:
            raise CalendarError("Mock calendar is failing")

        event_id = f"mock-event-{len(self.events) + 1}"
        self.events[event_id] = request

        return self._result(event_id)

    async def read_event(self, event_id: str) -> CalendarEventResult:
        if self.fail or event_id not in self.events:
            raise CalendarError(f"Mock event {event_id} does not exist")

        return self._result(event_id)

    def _result(self, event_id: str) -> CalendarEventResult:
        request = self.events[event_id]
        link = (
            f"https://meet.example.com/{event_id}"
            if request.meeting_type == MeetingType.ONLINE
            else None
        )
        return CalendarEventResult(event_id=event_id, meeting_link=link)


class MockIdentityProvider(IdentityProvider):
    """
    Accepts credentials of the form listed in `identities`, a mapping of
    credential to identity.
    """

    name = "mock"

    identities: dict[str, ExternalIdentity]

    def __init__(self, identities: dict[str, ExternalIdentity] | None = None):
        self.identities = identities or {}

    async def verify(self, credential: str, settings: Settings) -> ExternalIdentity:
        try:
            return self.identities[credential]
        except KeyError:
            raise MockLoginError("Unknown mock credential")
