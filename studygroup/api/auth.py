"""
Registration, login and the caller's own profile.
"""

from fastapi import APIRouter

from studygroup.core.models import (
    Envelope,
    GoogleLoginRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenResponse,
)
from studygroup.core.user import UserData, UserProfileData
from studygroup.service import auth as auth_service
from studygroup.service import user as user_service

from .dependencies import (
    AuthenticatedUser,
    DatabaseDependency,
    IdentityProviderDependency,
    KeysDependency,
    LoggerDependency,
    SettingsDependency,
)

auth_app = APIRouter(tags=["Authentication"])


@auth_app.post(
    "/register",
    status_code=201,
    summary="Register a new account",
    description=(
        "Create a local account with a password. Email addresses listed in the "
        "server's initial admin configuration are given the `admin` grant."
    ),
    responses={
        201: {"description": "Account created."},
        409: {"description": "The email address or user name is taken."},
        422: {"description": "Missing or invalid fields."},
    },
)
async def register(
    content: RegisterRequest,
    conn: DatabaseDependency,
    log: LoggerDependency,
    settings: SettingsDependency,
) -> Envelope[UserData]:
    log = log.bind(email=content.email, user_name=content.user_name)

    async with conn.begin():
        user = await user_service.create(
            user_name=content.user_name,
            email=content.email,
            first_name=content.first_name,
            middle_name=content.middle_name,
            last_name=content.last_name,
            password=content.password,
            grants=(
                "admin"
                if content.email.lower() in settings.create_admin_users
                else ""
            ),
            conn=conn,
            log=log,
        )
        data = user.to_core()

    return Envelope(message="Registration successful", data=data)


@auth_app.post(
    "/login",
    summary="Log in with email and password",
    description="Exchange an email and password for an access token.",
    responses={
        200: {"description": "Logged in; the access token is returned."},
        401: {"description": "Invalid email or password."},
        403: {"description": "The account is suspended."},
    },
)
async def login(
    content: LoginRequest,
    conn: DatabaseDependency,
    log: LoggerDependency,
    settings: SettingsDependency,
    keys: KeysDependency,
) -> Envelope[TokenResponse]:
    async with conn.begin():
        user = await user_service.authenticate(
            email=content.email, password=content.password, conn=conn, log=log
        )
        token = await auth_service.create_access_token(
            user=user, keys=keys, settings=settings, log=log
        )

    return Envelope(message="Login successful", data=token)


@auth_app.post(
    "/google",
    summary="Log in with Google",
    description=(
        "Exchange a Google ID token for an access token. The account is created "
        "on first login, or linked to an existing account with the same email."
    ),
    responses={
        200: {"description": "Logged in; the access token is returned."},
        401: {"description": "Google did not vouch for the credential."},
        403: {"description": "The account is suspended."},
    },
)
async def google_login(
    content: GoogleLoginRequest,
    conn: DatabaseDependency,
    log: LoggerDependency,
    settings: SettingsDependency,
    keys: KeysDependency,
    provider: IdentityProviderDependency,
) -> Envelope[TokenResponse]:
    async with conn.begin():
        user = await provider.login(
            credential=content.credential, settings=settings, conn=conn, log=log
        )
        token = await auth_service.create_access_token(
            user=user, keys=keys, settings=settings, log=log
        )

    return Envelope(message="Login successful", data=token)


@auth_app.get(
    "/me",
    summary="Get your profile",
    responses={
        200: {"description": "The caller's profile."},
        401: {"description": "Not logged in."},
    },
)
async def read_me(
    user: AuthenticatedUser, conn: DatabaseDependency
) -> Envelope[UserProfileData]:
    async with conn.begin():
        account = await user_service.read_by_id(user_id=user.user_id, conn=conn)
        data = account.to_profile()

    return Envelope(data=data)


@auth_app.put(
    "/me",
    summary="Update your profile",
    description="Partially update the caller's profile. Omitted fields are kept.",
    responses={
        200: {"description": "The updated profile."},
        401: {"description": "Not logged in."},
        409: {"description": "The new user name is taken."},
    },
)
async def update_me(
    content: ProfileUpdateRequest,
    user: AuthenticatedUser,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> Envelope[UserProfileData]:
    async with conn.begin():
        account = await user_service.update_profile(
            user_id=user.user_id,
            conn=conn,
            log=log,
            **content.model_dump(),
        )
        data = account.to_profile()

    return Envelope(message="Profile updated", data=data)
