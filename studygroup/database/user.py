"""
ORM for user information.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from studygroup.core.user import UserData, UserProfileData, UserStatus


class User(SQLModel, table=True):
    user_id: int | None = Field(default=None, primary_key=True)

    user_name: str = Field(unique=True)
    email: str = Field(unique=True)
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    profile_image: str | None = None

    # Exactly one of these is normally set: local accounts carry a password
    # hash, Google accounts carry the subject of their ID token.
    password_hash: str | None = None
    google_sub: str | None = Field(default=None, unique=True)

    # A list of grants (space separated!) that this user has.
    grants: str = Field(default="")
    status: str = Field(default=UserStatus.ACTIVE.value)

    created_at: datetime | None = Field(
        sa_column=Column(DateTime(timezone=True)), default=None
    )
    last_logged_in: datetime | None = Field(
        sa_column=Column(DateTime(timezone=True)), default=None
    )

    @property
    def full_name(self) -> str | None:
        names = [x for x in (self.first_name, self.last_name) if x]
        return " ".join(names) if names else None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    def has_grant(self, grant: str) -> bool:
        """
        Check if this user posseses the grant `grant`.
        """
        grant = grant.strip().lower().replace(" ", "_")

        if self.grants is None:
            return False
        return grant in self.grants.split(" ")

    def add_grant(self, grant: str):
        """
        Add a grant to the list this user possesses. If they already have it,
        this function does nothing.

        Note that all changes to the local copy of this data (as performed by
        this function) must be committed to the database separately.
        """
        grant = grant.strip().lower().replace(" ", "_")

        if self.has_grant(grant):
            return

        if not self.grants:
            self.grants = f"{grant}"
            return

        self.grants += f" {grant}"

    def remove_grant(self, grant: str):
        """
        Remove a grant from the list this user possesses. If they do not have it,
        this function does nothing.
        """
        grant = grant.strip().lower().replace(" ", "_")

        if not self.has_grant(grant):
            return

        self.grants = " ".join([x for x in self.grants.split(" ") if x != grant])

    def to_core(self) -> UserData:
        return UserData(
            user_id=self.user_id,
            user_name=self.user_name,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            full_name=self.full_name,
            profile_image=self.profile_image,
            grants={x for x in (self.grants or "").split(" ") if x},
            status=UserStatus(self.status),
        )

    def to_profile(self) -> UserProfileData:
        return UserProfileData(
            **self.to_core().model_dump(),
            middle_name=self.middle_name,
            bio=self.bio,
            created_at=self.created_at,
            last_logged_in=self.last_logged_in,
        )
