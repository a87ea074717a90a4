"""
Base for identity providers.
"""

import abc
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.config.settings import Settings
from studygroup.core.errors import AuthenticationFailed
from studygroup.database.user import User
from studygroup.service import user as user_service


class BaseLoginError(AuthenticationFailed):
    pass


class ExternalIdentity(BaseModel):
    """
    What an identity provider vouches for about a user.
    """

    subject: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    profile_image: str | None = None


class IdentityProvider(abc.ABC):
    """
    The base class for external identity providers. Downstream must implement:

    - verify: check a credential issued by the provider and return the
              identity it carries.

    Finding or creating the matching local user is shared.
    """

    name: Literal["mock", "google"]

    @abc.abstractmethod
    async def verify(self, credential: str, settings: Settings) -> ExternalIdentity:
        raise NotImplementedError

    async def login(
        self,
        credential: str,
        settings: Settings,
        conn: AsyncSession,
        log: FilteringBoundLogger,
    ) -> User:
        """
        Verify the credential and return the linked user, creating one on
        first login. An existing local account with the same email address is
        linked rather than duplicated.

        Raises
        ------
        BaseLoginError
            If the provider rejects the credential.
        UserSuspended
            If the linked account is suspended.
        """
        identity = await self.verify(credential=credential, settings=settings)

        log = log.bind(provider=self.name, email=identity.email)

        try:
            user = await user_service.read_by_google_sub(
                google_sub=identity.subject, conn=conn
            )
            log = log.bind(user_read=True, user_created=False)
        except user_service.UserNotFound:
            try:
                user = await user_service.read_by_email(email=identity.email, conn=conn)
                user.google_sub = identity.subject
                log = log.bind(user_read=True, user_linked=True)
            except user_service.UserNotFound:
                user = await user_service.create(
                    user_name=await self.free_user_name(identity=identity, conn=conn),
                    email=identity.email,
                    first_name=identity.first_name,
                    last_name=identity.last_name,
                    google_sub=identity.subject,
                    profile_image=identity.profile_image,
                    grants=(
                        "admin"
                        if identity.email.lower() in settings.create_admin_users
                        else ""
                    ),
                    conn=conn,
                    log=log,
                )
                log = log.bind(user_created=True, user_read=False)

        if not user.is_active:
            await log.awarn(f"{self.name}.login.suspended")
            raise user_service.UserSuspended("This account has been suspended")

        if user.profile_image is None:
            user.profile_image = identity.profile_image

        user.last_logged_in = datetime.now(timezone.utc)
        conn.add(user)

        await log.ainfo(f"{self.name}.login.success", user_id=user.user_id)

        return user

    async def free_user_name(
        self, identity: ExternalIdentity, conn: AsyncSession
    ) -> str:
        base = user_service.normalise_user_name(identity.email.split("@")[0])

        try:
            await user_service.read_by_name(user_name=base, conn=conn)
        except user_service.UserNotFound:
            return base

        return f"{base}_{identity.subject[-6:]}"
