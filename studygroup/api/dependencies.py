"""
Dependencies used by the API.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from studygroup.config.settings import Settings
from studygroup.core.errors import AuthenticationFailed, ForbiddenError
from studygroup.core.tokens import (
    KeyDecodeError,
    KeyExpiredError,
    KeyInactiveError,
    SigningKeys,
    decode_access_token,
)
from studygroup.core.user import UserData
from studygroup.realtime.hub import Hub, SocketIOHub
from studygroup.realtime.socketio import create_server
from studygroup.service.calendar import (
    CalendarError,
    CalendarProvider,
    DisabledCalendarProvider,
)
from studygroup.service.google import GoogleCalendarProvider, GoogleIdentityProvider
from studygroup.service.mock import MockCalendarProvider
from studygroup.service.provider import IdentityProvider


@lru_cache
def SETTINGS():
    return Settings()


DATABASE_MANAGER = SETTINGS().async_manager()

SIO = create_server(cors_origins=SETTINGS().cors_origins)
HUB = SocketIOHub(SIO)


async def get_async_session():
    """
    A plain session. Handlers open their own transaction with
    `async with conn.begin()` so that they can broadcast after it commits.
    """
    async with DATABASE_MANAGER.session() as session:
        yield session


def logger():
    return get_logger()


@lru_cache
def KEYS() -> SigningKeys:
    return SETTINGS().signing_keys()


def get_hub() -> Hub:
    return HUB


def calendar_from_settings(
    settings: Settings, log: FilteringBoundLogger
) -> CalendarProvider:
    """
    The configured calendar provider. A Google provider without credentials
    falls back to the disabled provider, so schedules are still stored.
    """
    match settings.calendar_provider:
        case "google":
            try:
                return GoogleCalendarProvider.from_settings(settings)
            except CalendarError as e:
                log.warning("calendar.not_configured", provider="google", error=str(e))
                return DisabledCalendarProvider()
        case "mock":
            return MockCalendarProvider()
        case _:
            return DisabledCalendarProvider()


@lru_cache
def get_calendar() -> CalendarProvider:
    return calendar_from_settings(SETTINGS(), get_logger())


@lru_cache
def get_identity_provider() -> IdentityProvider:
    return GoogleIdentityProvider()


SettingsDependency = Annotated[Settings, Depends(SETTINGS)]
DatabaseDependency = Annotated[AsyncSession, Depends(get_async_session)]
LoggerDependency = Annotated[FilteringBoundLogger, Depends(logger)]
KeysDependency = Annotated[SigningKeys, Depends(KEYS)]
HubDependency = Annotated[Hub, Depends(get_hub)]
CalendarDependency = Annotated[CalendarProvider, Depends(get_calendar)]
IdentityProviderDependency = Annotated[
    IdentityProvider, Depends(get_identity_provider)
]
# The Socket.IO id of the caller's own connection, left out of the broadcasts
# their request triggers.
SocketIdDependency = Annotated[str | None, Header(alias="X-Socket-Id")]


async def handle_authenticated_user(
    request: Request, keys: KeysDependency, log: LoggerDependency
) -> UserData:
    """
    Read the Bearer access token from the Authorization header and return the
    user it carries.

    Raises
    ------
    AuthenticationFailed
        If there is no token, or it is malformed, forged or expired.
    ForbiddenError
        If the token was issued to a suspended account.
    """
    log = log.bind(client=request.client)

    if "Authorization" not in request.headers:
        await log.adebug("api.auth.no_token")
        raise AuthenticationFailed("Log in first")

    scheme, _, access_token = request.headers["Authorization"].partition(" ")

    if scheme != "Bearer" or not access_token:
        await log.adebug("api.auth.bad_header")
        raise AuthenticationFailed("Expected a Bearer token")

    try:
        user = decode_access_token(
            access_token=access_token,
            public_key=keys.public_key,
            key_pair_type=keys.key_pair_type,
        )
    except KeyExpiredError:
        await log.adebug("api.auth.expired")
        raise AuthenticationFailed("Your session has expired, log in again")
    except KeyInactiveError:
        await log.adebug("api.auth.inactive")
        raise ForbiddenError("Your account is suspended")
    except KeyDecodeError:
        await log.adebug("api.auth.no_decode")
        raise AuthenticationFailed("Invalid access token")

    return user


AuthenticatedUser = Annotated[UserData, Depends(handle_authenticated_user)]


async def handle_admin_user(user: AuthenticatedUser) -> UserData:
    if not user.is_admin:
        raise ForbiddenError("This endpoint requires the 'admin' grant")

    return user


AdminUser = Annotated[UserData, Depends(handle_admin_user)]
