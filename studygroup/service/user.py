"""
Service layer for users
"""

from datetime import datetime, timezone

from sqlalchemy import delete as sql_delete
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.core.errors import (
    AuthenticationFailed,
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from studygroup.core.hashing import hash_password, verify_password
from studygroup.core.user import UserProfileData, UserStatus
from studygroup.database.user import User


class UserNotFound(NotFoundError):
    pass


class UserExistsError(ConflictError):
    pass


class InvalidCredentials(AuthenticationFailed):
    pass


class UserSuspended(ForbiddenError):
    pass


class UserStillActive(InvalidRequestError):
    pass


def normalise_user_name(user_name: str) -> str:
    return user_name.strip().lower().replace(" ", "_")


async def create(
    user_name: str,
    email: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    first_name: str | None = None,
    middle_name: str | None = None,
    last_name: str | None = None,
    password: str | None = None,
    google_sub: str | None = None,
    profile_image: str | None = None,
    grants: str = "",
) -> User:
    """
    Creates a user. Either a password (local account) or a google subject
    (Google account) should be given.

    Raises
    ------
    UserExistsError
        If the email address or user name is already taken.
    """

    user_name = normalise_user_name(user_name)
    email = email.strip().lower()

    log = log.bind(user_name=user_name, email=email, grants=grants)

    existing = await conn.execute(
        select(User.user_id).where(
            or_(User.user_name == user_name, User.email == email)
        )
    )

    if existing.first() is not None:
        await log.ainfo("user.create.exists")
        raise UserExistsError(f"User with user name {user_name} or that email exists")

    user = User(
        user_name=user_name,
        email=email,
        first_name=first_name,
        middle_name=middle_name,
        last_name=last_name,
        password_hash=hash_password(password) if password is not None else None,
        google_sub=google_sub,
        profile_image=profile_image,
        grants=grants,
        status=UserStatus.ACTIVE.value,
        created_at=datetime.now(timezone.utc),
    )

    try:
        conn.add(user)
        await conn.flush()
    except IntegrityError:
        await log.ainfo("user.create.exists")
        raise UserExistsError(f"User with user name {user_name} or that email exists")

    log = log.bind(user_id=user.user_id)
    await log.ainfo("user.created")

    return user


async def read_by_id(user_id: int, conn: AsyncSession) -> User:
    res = await conn.get(User, user_id)

    if res is None:
        raise UserNotFound(f"User with ID {user_id} not found in the database")

    return res


async def read_by_name(user_name: str, conn: AsyncSession) -> User:
    user_name = normalise_user_name(user_name)

    query = select(User).filter(User.user_name == user_name)
    res = (await conn.execute(query)).unique().scalar_one_or_none()

    if res is None:
        raise UserNotFound(f"User with name {user_name} not found in the database")

    return res


async def read_by_email(email: str, conn: AsyncSession) -> User:
    email = email.strip().lower()

    query = select(User).filter(User.email == email)
    res = (await conn.execute(query)).unique().scalar_one_or_none()

    if res is None:
        raise UserNotFound(f"User with email {email} not found in the database")

    return res


async def read_by_google_sub(google_sub: str, conn: AsyncSession) -> User:
    query = select(User).filter(User.google_sub == google_sub)
    res = (await conn.execute(query)).unique().scalar_one_or_none()

    if res is None:
        raise UserNotFound("No user is linked to that Google account")

    return res


async def authenticate(
    email: str, password: str, conn: AsyncSession, log: FilteringBoundLogger
) -> User:
    """
    Check an email and password pair, returning the user and stamping their
    login time.

    Raises
    ------
    InvalidCredentials
        If there is no such user or the password does not match. The two cases
        are not distinguished.
    UserSuspended
        If the credentials are good but the account is suspended.
    """
    log = log.bind(email=email)

    try:
        user = await read_by_email(email=email, conn=conn)
    except UserNotFound:
        await log.ainfo("user.login.unknown_email")
        raise InvalidCredentials("Invalid email or password")

    log = log.bind(user_id=user.user_id)

    if user.password_hash is None or not verify_password(password, user.password_hash):
        await log.ainfo("user.login.bad_password")
        raise InvalidCredentials("Invalid email or password")

    if not user.is_active:
        await log.awarn("user.login.suspended")
        raise UserSuspended("This account has been suspended")

    user.last_logged_in = datetime.now(timezone.utc)
    conn.add(user)

    await log.ainfo("user.login.success")

    return user


async def update_profile(
    user_id: int,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    **changes,
) -> User:
    """
    Apply a partial profile update. Keys with value `None` are left alone.
    """
    log = log.bind(
        user_id=user_id, fields=sorted(k for k, v in changes.items() if v is not None)
    )

    user = await read_by_id(user_id=user_id, conn=conn)

    if changes.get("user_name") is not None:
        changes["user_name"] = normalise_user_name(changes["user_name"])

        if changes["user_name"] != user.user_name:
            taken = await conn.execute(
                select(User.user_id).where(User.user_name == changes["user_name"])
            )
            if taken.first() is not None:
                await log.ainfo("user.update.name_taken")
                raise UserExistsError(f"User name {changes['user_name']} is taken")

    for key, value in changes.items():
        if value is not None:
            setattr(user, key, value)

    conn.add(user)
    await conn.flush()

    await log.ainfo("user.updated")

    return user


async def get_user_list(conn: AsyncSession) -> list[UserProfileData]:
    """
    Get a list of all users registered to the system.
    """
    query = select(User).order_by(User.user_id)
    res = (await conn.execute(query)).unique().scalars().all()
    return [u.to_profile() for u in res]


async def add_grant(
    user_id: int, grant: str, conn: AsyncSession, log: FilteringBoundLogger
) -> User:
    log = log.bind(user_id=user_id, grant=grant)
    user = await read_by_id(user_id=user_id, conn=conn)

    user.add_grant(grant=grant)
    conn.add(user)

    await log.ainfo("user.grant_added")

    return user


async def remove_grant(
    user_id: int, grant: str, conn: AsyncSession, log: FilteringBoundLogger
) -> User:
    log = log.bind(user_id=user_id, grant=grant)
    user = await read_by_id(user_id=user_id, conn=conn)

    user.remove_grant(grant=grant)
    conn.add(user)

    await log.ainfo("user.grant_removed")

    return user


async def toggle_admin(
    user_id: int, conn: AsyncSession, log: FilteringBoundLogger
) -> User:
    """
    Give the admin grant to a user who lacks it, or take it away from one who
    has it.
    """
    user = await read_by_id(user_id=user_id, conn=conn)

    if user.has_grant("admin"):
        return await remove_grant(user_id=user_id, grant="admin", conn=conn, log=log)

    return await add_grant(user_id=user_id, grant="admin", conn=conn, log=log)


async def set_status(
    user_id: int, status: UserStatus, conn: AsyncSession, log: FilteringBoundLogger
) -> User:
    log = log.bind(user_id=user_id, status=status.value)
    user = await read_by_id(user_id=user_id, conn=conn)

    user.status = status.value
    conn.add(user)

    await log.ainfo("user.status_changed")

    return user


async def delete(user_id: int, conn: AsyncSession, log: FilteringBoundLogger):
    """
    Deletes a user and, through the cascades, everything they own. Only
    accounts that are no longer active may be removed.
    """
    log = log.bind(user_id=user_id)

    user = await read_by_id(user_id=user_id, conn=conn)

    if user.is_active:
        await log.ainfo("user.delete.still_active")
        raise UserStillActive("Only non-active users can be deleted")

    await conn.execute(sql_delete(User).where(User.user_id == user_id))
    conn.expunge(user)

    await log.ainfo("user.deleted")
