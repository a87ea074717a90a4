"""
Google integrations: the Calendar API (with Meet links) for schedules, and ID
token verification for "Sign in with Google".

Calendar access uses a single service account style refresh token owned by
the deployment, not per-user consent.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from studygroup.config.settings import Settings
from studygroup.core.content import MeetingType

from .calendar import (
    CalendarError,
    CalendarEventRequest,
    CalendarEventResult,
    CalendarProvider,
)
from .provider import BaseLoginError, ExternalIdentity, IdentityProvider

GOOGLE_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"


class GoogleLoginError(BaseLoginError):
    pass


def google_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])[:200]
        if isinstance(error, str):
            return payload.get("error_description", error)[:200]

    return response.text.strip()[:200] or "Request failed without an error payload"


def json_object(response: httpx.Response, what: str) -> dict[str, Any]:
    """
    The JSON object in a successful response body. Anything else (an HTML
    error page from a proxy, a bare list) raises `CalendarError`.
    """
    try:
        payload = response.json()
    except ValueError as e:
        raise CalendarError(f"{what} response is not valid JSON") from e

    if not isinstance(payload, dict):
        raise CalendarError(f"{what} response is not a JSON object")

    return payload


def event_result(event: dict[str, Any]) -> CalendarEventResult:
    event_id = event.get("id")

    if not isinstance(event_id, str) or not event_id:
        raise CalendarError("Google Calendar response has no event id")

    meeting_link = event.get("hangoutLink")

    return CalendarEventResult(
        event_id=event_id,
        meeting_link=meeting_link if isinstance(meeting_link, str) else None,
    )


class GoogleCalendarProvider(CalendarProvider):
    """
    Calendar provider for Google Calendar. Access tokens are minted from the
    configured refresh token and cached until shortly before they expire.
    """

    name = "google"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        calendar_id: str = "primary",
        timezone_name: str = "Asia/Manila",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.calendar_id = calendar_id
        self.timezone_name = timezone_name
        self.timeout = timeout
        self.transport = transport

        self._access_token: str | None = None
        self._access_token_expires_at: datetime | None = None
        self._refresh_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleCalendarProvider":
        if not (
            settings.google_calendar_client_id
            and settings.google_calendar_client_secret
            and settings.google_calendar_refresh_token
        ):
            raise CalendarError("Google Calendar credentials are not configured")

        return cls(
            client_id=settings.google_calendar_client_id,
            client_secret=settings.google_calendar_client_secret,
            refresh_token=settings.google_calendar_refresh_token,
            calendar_id=settings.google_calendar_id,
            timezone_name=settings.calendar_timezone,
            timeout=settings.calendar_request_timeout,
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def _token_is_fresh(self) -> bool:
        if self._access_token is None or self._access_token_expires_at is None:
            return False
        return datetime.now(timezone.utc) < self._access_token_expires_at

    async def access_token(self) -> str:
        if self._token_is_fresh():
            return self._access_token

        async with self._refresh_lock:
            if self._token_is_fresh():
                return self._access_token

            try:
                async with self.client() as client:
                    response = await client.post(
                        GOOGLE_OAUTH_TOKEN_URL,
                        data={
                            "client_id": self.client_id,
                            "client_secret": self.client_secret,
                            "refresh_token": self.refresh_token,
                            "grant_type": "refresh_token",
                        },
                        headers={"Accept": "application/json"},
                    )
            except httpx.HTTPError as e:
                raise CalendarError(f"Google OAuth token refresh failed: {e}") from e

            if response.status_code != 200:
                raise CalendarError(
                    f"Google OAuth token refresh failed ({response.status_code}): "
                    f"{google_error_message(response)}"
                )

            payload = json_object(response, "Google OAuth token")
            access_token = payload.get("access_token")

            if not isinstance(access_token, str) or not access_token:
                raise CalendarError("Google OAuth token response has no access_token")

            expires_in = payload.get("expires_in", 3600)

            if isinstance(expires_in, bool) or not isinstance(expires_in, int):
                raise CalendarError("Google OAuth token response has a bad expires_in")

            # Refresh a minute early.
            self._access_token = access_token
            self._access_token_expires_at = datetime.now(timezone.utc) + timedelta(
                seconds=max(expires_in - 60, 30)
            )

            return self._access_token

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        token = await self.access_token()

        try:
            async with self.client() as client:
                response = await client.request(
                    method,
                    f"{GOOGLE_CALENDAR_API_BASE_URL}{path}",
                    params=params,
                    json=json,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            raise CalendarError(f"Google Calendar request failed: {e}") from e

        if response.status_code not in [200, 201]:
            raise CalendarError(
                f"Google Calendar returned {response.status_code}: "
                f"{google_error_message(response)}"
            )

        return json_object(response, "Google Calendar")

    def event_body(self, request: CalendarEventRequest) -> dict[str, Any]:
        body = {
            "summary": request.title,
            "description": request.description,
            "location": request.location,
            "start": {
                "dateTime": request.start.isoformat(),
                "timeZone": self.timezone_name,
            },
            "end": {
                "dateTime": request.end.isoformat(),
                "timeZone": self.timezone_name,
            },
        }

        if request.meeting_type == MeetingType.ONLINE:
            body["conferenceData"] = {
                "createRequest": {
                    "requestId": uuid.uuid4().hex,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }

        return body

    async def create_event(self, request: CalendarEventRequest) -> CalendarEventResult:
        params = (
            {"conferenceDataVersion": 1}
            if request.meeting_type == MeetingType.ONLINE
            else None
        )

        event = await self.request(
            "POST",
            f"/calendars/{self.calendar_id}/events",
            params=params,
            json=self.event_body(request),
        )

        return event_result(event)

    async def read_event(self, event_id: str) -> CalendarEventResult:
        event = await self.request(
            "GET", f"/calendars/{self.calendar_id}/events/{event_id}"
        )

        return event_result(event)


class GoogleIdentityProvider(IdentityProvider):
    """
    Verifies Google ID tokens (the `credential` handed to the browser by
    Google Identity Services) against Google's token info endpoint.
    """

    name = "google"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.transport = transport

    async def verify(self, credential: str, settings: Settings) -> ExternalIdentity:
        login_error = GoogleLoginError("Could not verify the Google credential")

        if settings.google_client_id is None:
            raise GoogleLoginError("Google sign in is not configured")

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.get(
                    settings.google_token_info_url, params={"id_token": credential}
                )
        except httpx.HTTPError as e:
            raise login_error from e

        if response.status_code != 200:
            raise login_error

        try:
            info = response.json()
        except ValueError as e:
            raise login_error from e

        if not isinstance(info, dict):
            raise login_error

        if info.get("aud") != settings.google_client_id:
            raise GoogleLoginError("Google credential was issued for another client")

        if str(info.get("email_verified", "false")).lower() != "true":
            raise GoogleLoginError("Google account email address is not verified")

        if not info.get("sub") or not info.get("email"):
            raise login_error

        return ExternalIdentity(
            subject=str(info["sub"]),
            email=info["email"],
            first_name=info.get("given_name"),
            last_name=info.get("family_name"),
            profile_image=info.get("picture"),
        )
